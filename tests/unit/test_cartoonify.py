"""Unit tests for cartoonify/cartoonify.py"""
import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from tests.base_test import ImageTestCase
from cartoonify import passes
from cartoonify.cartoonify import Cartoonify, derived_name
from cartoonify.config import ProcessingConfig
from cartoonify.converters import WHITE
from cartoonify.cpu_pipeline import CpuPipeline
from cartoonify.errors import DimensionMismatchError
from cartoonify.image_io import FileImageSource


class TestDerivedName(unittest.TestCase):
    def test_suffix_and_lower_case_extension(self):
        self.assertEqual(derived_name("photo.JPG", "cartoon"), "photo_cartoon.jpg")
        self.assertEqual(derived_name("dir/a.b.png", "edges"), "dir/a.b_edges.png")


class TestCartoonify(ImageTestCase):
    def setUp(self):
        super().setUp()
        self.photo = self.save_sample_photo("photo.png")

    def test_load_photo_sets_size(self):
        cartoon = Cartoonify()
        self.assertIsNone(cartoon.width)
        cartoon.load_photo(self.photo)
        self.assertEqual((cartoon.width, cartoon.height), (16, 12))
        self.assertEqual(cartoon.num_images(), 1)
        _, _, pixels = FileImageSource().load(self.photo)
        self.assertEqual(cartoon.pixel(3, 2), int(pixels[2 * 16 + 3]))

    def test_pixel_outside_image(self):
        cartoon = Cartoonify()
        cartoon.load_photo(self.photo)
        for x, y in ((16, 0), (0, 12), (-1, 3), (3, -1)):
            with self.assertRaises(IndexError):
                cartoon.pixel(x, y)
        cartoon.pixel(15, 11)

    def test_load_photo_of_other_size(self):
        cartoon = Cartoonify()
        cartoon.load_photo(self.photo)
        other = self.save_sample_photo("small.png", self.create_sample_rgb_image(5, 5))
        with self.assertRaises(DimensionMismatchError):
            cartoon.load_photo(other)
        self.assertEqual(cartoon.num_images(), 1)

    def test_save_photo_keeps_stack(self):
        cartoon = Cartoonify()
        cartoon.load_photo(self.photo)
        out = os.path.join(self.temp_directory, "copy.png")
        cartoon.save_photo(out)
        self.assertEqual(cartoon.num_images(), 1)
        _, _, saved = FileImageSource().load(out)
        self.assertPixelsEqual(saved, cartoon.current_image())

    def test_process_photo_writes_cartoon(self):
        config = ProcessingConfig(edge_threshold=90, num_colours=5)
        with Cartoonify(config) as cartoon:
            secs = cartoon.process_photo(self.photo)
            self.assertGreaterEqual(secs, 0.0)
            self.assertEqual(cartoon.num_images(), 0)
        out = os.path.join(self.temp_directory, "photo_cartoon.png")
        self.assertTrue(os.path.exists(out))
        self.assertFalse(os.path.exists(os.path.join(self.temp_directory, "photo_edges.png")))

        width, height, original = FileImageSource().load(self.photo)
        blurred = passes.gaussian_blur(original, width, height)
        edges = passes.sobel_edge_detect(blurred, width, height, 90)
        expected = passes.merge_mask(edges, WHITE, passes.reduce_colours(original, 5))
        _, _, saved = FileImageSource().load(out)
        self.assertPixelsEqual(saved, expected)

    def test_debug_saves_intermediates(self):
        cartoon = Cartoonify(ProcessingConfig(debug=True))
        cartoon.process_photo(self.photo)
        for suffix in ("cartoon", "colours", "edges", "blurred"):
            self.assertTrue(os.path.exists(os.path.join(self.temp_directory, f"photo_{suffix}.png")), suffix)

        _, _, original = FileImageSource().load(self.photo)
        _, _, colours = FileImageSource().load(os.path.join(self.temp_directory, "photo_colours.png"))
        self.assertPixelsEqual(colours, passes.reduce_colours(original, 3))

    def test_photos_of_different_sizes_in_one_session(self):
        other = self.save_sample_photo("wide.png", self.create_sample_image_with_pattern(30, 4))
        cartoon = Cartoonify()
        cartoon.process_photo(self.photo)
        cartoon.process_photo(other)
        self.assertTrue(os.path.exists(os.path.join(self.temp_directory, "wide_cartoon.png")))

    def test_file_without_extension_is_skipped(self):
        cartoon = Cartoonify()
        with self.assertLogs('cartoonify.cartoonify', level='WARNING'):
            self.assertEqual(cartoon.process_photo(os.path.join(self.temp_directory, "README")), 0.0)

    def test_stack_cleared_after_failure(self):
        cartoon = Cartoonify()
        with self.assertRaises(FileNotFoundError):
            cartoon.process_photo(os.path.join(self.temp_directory, "missing.png"))
        self.assertEqual(cartoon.num_images(), 0)

    def test_cpu_pipeline_by_default(self):
        self.assertIsInstance(Cartoonify().pipeline(), CpuPipeline)


if __name__ == '__main__':
    unittest.main()
