import unittest

from poolparity.domain._tensor import TensorDescriptor
from poolparity.domain.device._device import Device, DeviceType


class TestTensorDescriptor(unittest.TestCase):
    def test_strides_and_flat_index(self):
        desc = TensorDescriptor((2, 3, 4, 5))
        self.assertEqual(desc.get_strides(), (60, 20, 5, 1))
        self.assertEqual(desc.get_index(0, 0, 0, 0), 0)
        self.assertEqual(desc.get_index(1, 2, 3, 4), 60 + 40 + 15 + 4)
        self.assertEqual(desc.element_space(), 120)
        self.assertEqual(desc.plane_size(), 20)

    def test_to_string_lists_lengths_then_strides(self):
        desc = TensorDescriptor((1, 2, 3, 4))
        self.assertEqual(desc.to_string(), "1, 2, 3, 4, 24, 12, 4, 1")
        self.assertEqual(str(desc), desc.to_string())

    def test_equality_is_by_lengths(self):
        self.assertEqual(TensorDescriptor((1, 1, 2, 2)), TensorDescriptor([1, 1, 2, 2]))
        self.assertNotEqual(TensorDescriptor((1, 1, 2, 2)), TensorDescriptor((1, 1, 2, 3)))

    def test_rejects_bad_lengths(self):
        for lengths in [(1, 1, 2), (1, 1, 0, 2), (0, 1, 1, 1), (1, 1, 1, 1, 1)]:
            with self.subTest(lengths=lengths):
                with self.assertRaises(ValueError):
                    TensorDescriptor(lengths)


class TestDevice(unittest.TestCase):
    def test_parse_known_devices(self):
        self.assertIs(Device("cpu").type, DeviceType.CPU)
        self.assertIs(Device("host").type, DeviceType.HOST)
        self.assertEqual(str(Device("host")), "host")
        self.assertEqual(repr(Device("cpu")), "Device('cpu')")

    def test_invalid_device(self):
        for name in ["gpu", "cuda", "cuda:0", "HOST", ""]:
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    Device(name)

    def test_equality_and_hash(self):
        self.assertEqual(Device("host"), Device("host"))
        self.assertNotEqual(Device("host"), Device("cpu"))
        self.assertEqual(len({Device("host"), Device("host"), Device("cpu")}), 2)


if __name__ == "__main__":
    unittest.main()
