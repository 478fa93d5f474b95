import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from cartoonify.enums import Channel, DeviceType, PipelineState


class TestEnums(unittest.TestCase):
    def test_channel_shifts(self):
        self.assertEqual([c.shift for c in Channel], [16, 8, 0])

    def test_channel_from_value(self):
        self.assertIs(Channel.from_value("red"), Channel.RED)
        self.assertIs(Channel.from_value("G"), Channel.GREEN)
        self.assertIs(Channel.from_value(Channel.BLUE), Channel.BLUE)
        with self.assertRaises(ValueError):
            Channel.from_value("alpha")
        with self.assertRaises(ValueError):
            Channel.from_value(16)

    def test_pipeline_states_in_order(self):
        state = PipelineState.START
        seen = [state]
        while state is not PipelineState.DONE:
            state = state.next()
            seen.append(state)
        self.assertEqual(seen, list(PipelineState))
        with self.assertRaises(ValueError):
            PipelineState.DONE.next()

    def test_device_type(self):
        self.assertIs(DeviceType.from_value("GPU"), DeviceType.GPU)
        with self.assertRaises(ValueError):
            DeviceType.from_value("fpga")


if __name__ == '__main__':
    unittest.main()
