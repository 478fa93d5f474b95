"""GPU pipeline tests; these need an OpenCL device and are skipped without one."""
import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from tests.base_test import ImageTestCase
from cartoonify.config import ProcessingConfig
from cartoonify.converters import WHITE
from cartoonify.cpu_pipeline import CpuPipeline
from cartoonify.enums import PipelineState
from cartoonify.errors import DeviceError
from cartoonify.gpu_context import DeviceProvider, GpuSession, opencl_session
from cartoonify.gpu_pipeline import INT_ARG_MAX, GpuPipeline, global_size, kernel_int
from cartoonify.image_stack import ImageStack
from cartoonify.stage_graph import cartoon_graph


class TestGlobalSize(unittest.TestCase):
    def test_rounds_up_to_work_group(self):
        self.assertEqual(global_size(1000, 256), 1024)
        self.assertEqual(global_size(1024, 256), 1024)
        self.assertEqual(global_size(1, 64), 64)
        self.assertEqual(global_size(7, 1), 7)


class TestKernelInt(unittest.TestCase):
    def test_small_values_unchanged(self):
        self.assertEqual(kernel_int(128), 128)
        self.assertEqual(kernel_int(WHITE), WHITE)

    def test_saturates_to_c_int(self):
        self.assertEqual(kernel_int(2 ** 31), INT_ARG_MAX)
        self.assertEqual(kernel_int(10 ** 12), INT_ARG_MAX)
        self.assertEqual(kernel_int(-(2 ** 40)), -INT_ARG_MAX - 1)


class TestWaitList(unittest.TestCase):
    def test_waits_on_predecessors_and_upload(self):
        pipeline = GpuPipeline(GpuSession(), cartoon_graph())
        events = {"blur": "e-blur", "edges": "e-edges", "quantize": "e-quantize"}
        graph = pipeline.graph
        self.assertEqual(pipeline.wait_list(graph["blur"], events, "upload"), ["upload"])
        self.assertEqual(pipeline.wait_list(graph["edges"], events, "upload"), ["e-blur"])
        self.assertEqual(pipeline.wait_list(graph["quantize"], events, "upload"), ["upload"])
        self.assertEqual(pipeline.wait_list(graph["merge"], events, "upload"), ["e-edges", "e-quantize"])


class TestGpuPipeline(ImageTestCase):
    def setUp(self):
        super().setUp()
        self.config = ProcessingConfig(use_gpu=True, device_type="all", work_group_size=64)
        try:
            DeviceProvider(self.config.device_type, self.config.platform_index).select_device()
        except DeviceError as e:
            self.skipTest(f"No OpenCL device: {e}")
        # with a device present, a program that fails to build fails the test
        self.session = GpuSession(self.config)
        self.session.acquire()

    def tearDown(self):
        self.session.release()
        super().tearDown()

    def run_both(self, width, height, pixels, config):
        cpu_stack = ImageStack(width, height)
        cpu_stack.push(pixels)
        CpuPipeline().run(cpu_stack, config)
        gpu_stack = ImageStack(width, height)
        gpu_stack.push(pixels)
        pipeline = GpuPipeline(self.session)
        pipeline.run(gpu_stack, config)
        self.assertEqual(pipeline.state, PipelineState.DONE)
        return cpu_stack, gpu_stack

    def assertStacksEqual(self, cpu_stack, gpu_stack):
        self.assertEqual(len(cpu_stack), len(gpu_stack))
        for pos in range(len(cpu_stack)):
            self.assertPixelsEqual(gpu_stack[pos], cpu_stack[pos])

    def test_matches_cpu(self):
        pixels = self.create_random_pixels(37, 23, seed=42)
        self.assertStacksEqual(*self.run_both(37, 23, pixels, self.config))

    def test_matches_cpu_with_other_settings(self):
        config = ProcessingConfig(use_gpu=True, device_type="all", work_group_size=64,
                                  edge_threshold=30, num_colours=7)
        pixels = self.create_pattern_pixels(20, 11)
        self.assertStacksEqual(*self.run_both(20, 11, pixels, config))

    def test_tiny_images(self):
        for width, height in ((1, 1), (2, 1), (3, 5)):
            pixels = self.create_random_pixels(width, height, seed=width * 10 + height)
            self.assertStacksEqual(*self.run_both(width, height, pixels, self.config))

    def test_program_builds_every_stage_kernel(self):
        session = GpuSession(self.config)
        try:
            session.acquire()
            self.assertIsNotNone(session.program)
            for stage in cartoon_graph():
                self.assertIsNotNone(session.kernel(stage.kernel_name))
        finally:
            session.release()

    def test_threshold_beyond_c_int(self):
        config = ProcessingConfig(use_gpu=True, device_type="all", work_group_size=64,
                                  edge_threshold=2 ** 31)
        cpu_stack, gpu_stack = self.run_both(6, 5, self.create_random_pixels(6, 5, seed=8), config)
        self.assertStacksEqual(cpu_stack, gpu_stack)
        self.assertTrue((gpu_stack[2] == WHITE).all())

    def test_session_context_releases_resources(self):
        with opencl_session(self.config) as session:
            stack = ImageStack(4, 3)
            stack.push(self.create_random_pixels(4, 3))
            GpuPipeline(session).run(stack, self.config)
            self.assertTrue(session.is_acquired)
        self.assertFalse(session.is_acquired)
        self.assertIsNone(session._buffers)

    def test_buffers_follow_photo_size(self):
        self.run_both(8, 8, self.create_random_pixels(8, 8), self.config)
        first = self.session._buffers
        self.run_both(8, 8, self.create_random_pixels(8, 8, seed=2), self.config)
        self.assertIs(self.session._buffers, first)
        self.run_both(9, 4, self.create_random_pixels(9, 4), self.config)
        self.assertEqual((self.session._buffers.width, self.session._buffers.height), (9, 4))


if __name__ == '__main__':
    unittest.main()
