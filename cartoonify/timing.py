import logging
import time
from functools import wraps

logger = logging.getLogger(__name__)


def timing(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        end = time.perf_counter()
        logger.debug(f"[{func.__name__}] took {end - start:.4f} secs.")
        return result
    return wrapper
