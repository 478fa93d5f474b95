"""Command line entry point: cartoonify [-g] [-d] [-e THRESHOLD] [-c COLOURS] photo1.jpg photo2.jpg ..."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from tqdm import tqdm

from cartoonify.cartoonify import Cartoonify, derived_name
from cartoonify.config import ProcessingConfig, load_config
from cartoonify.errors import ConfigurationError, DeviceError
from cartoonify.gpu_context import describe_devices

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cartoonify",
        description="Uses edge detection and colour reduction to make photos cartoon-like. "
                    "Each photo xyz.jpg is written to xyz_cartoon.jpg.")
    parser.add_argument('-g', '--gpu', action='store_true', help='use the GPU, to speed up photo processing')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='turn on debugging, which logs timings and saves intermediate photos')
    parser.add_argument('-e', '--edge-threshold', type=int, default=None,
                        help='values range from 0 (everything is an edge) up to about 1000 or more')
    parser.add_argument('-c', '--colours', type=int, default=None,
                        help='number of discrete values within each colour channel (1..256)')
    parser.add_argument('--config', default=None, help='JSON file with processing options')
    parser.add_argument('--list-devices', action='store_true', help='list the available OpenCL devices and exit')
    parser.add_argument('photos', nargs='*', help='photos to process')
    return parser


def make_config(args: argparse.Namespace) -> ProcessingConfig:
    config = load_config(args.config) if args.config else ProcessingConfig()
    if args.gpu:
        config.use_gpu = True
    if args.debug:
        config.debug = True
    if args.edge_threshold is not None:
        config.edge_threshold = args.edge_threshold
        print(f"Using edge threshold {config.edge_threshold}")
    if args.colours is not None:
        config.num_colours = args.colours
        print(f"Using {config.num_colours} discrete colours per channel.")
    return config


def list_devices() -> int:
    try:
        devices = describe_devices()
    except DeviceError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    for device in devices:
        print(f"{device['platform']}: {device['name']} (OpenCL {device['version']})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.list_devices:
        return list_devices()
    if not args.photos:
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        config = make_config(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    total = 0.0
    done = 0
    with Cartoonify(config) as cartoon:
        for name in tqdm(args.photos, desc="Processing photos", disable=len(args.photos) < 2):
            try:
                secs = cartoon.process_photo(name)
            except Exception as e:
                logger.error(f"Failed to process {name}: {e}")
                return 1
            total += secs
            done += 1
            print(f"Done {name} -> {derived_name(name, 'cartoon')} in {secs:.3f} secs.")
    print(f"Average processing time is {total / done:.3f} for {done} photos.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
