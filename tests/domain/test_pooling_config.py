import unittest

from poolparity.domain._pooling import PoolingConfig, PoolingMode
from poolparity.domain._tensor import TensorDescriptor


class TestPoolingConfig(unittest.TestCase):
    def test_scalar_arguments_are_normalized_to_pairs(self):
        cfg = PoolingConfig(PoolingMode.MAX, window=3, stride=2, pad=1)
        self.assertEqual(cfg.window, (3, 3))
        self.assertEqual(cfg.stride, (2, 2))
        self.assertEqual(cfg.pad, (1, 1))
        self.assertEqual(cfg.kernel_size, (3, 3))
        self.assertEqual(cfg.padding, (1, 1))

    def test_stride_defaults_to_window(self):
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=(2, 3))
        self.assertEqual(cfg.stride, (2, 3))
        self.assertEqual(cfg.pad, (0, 0))

    def test_mode_accepts_string_value(self):
        cfg = PoolingConfig("average", window=2)
        self.assertIs(cfg.mode, PoolingMode.AVERAGE)
        self.assertEqual(cfg.mode.label, "Average")
        self.assertEqual(PoolingMode.MAX.label, "Max")

    def test_invalid_geometry_rejected(self):
        bad = [
            dict(window=(0, 2)),
            dict(window=2, stride=(1, 0)),
            dict(window=2, pad=(-1, 0)),
            dict(window=2, pad=(2, 0)),
            dict(window=(3, 1), pad=(1, 1)),
        ]
        for kwargs in bad:
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    PoolingConfig(PoolingMode.MAX, **kwargs)

    def test_average_accepts_padding_not_smaller_than_window(self):
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=2, stride=1, pad=2)
        self.assertEqual(cfg.pad, (2, 2))
        out = cfg.get_forward_output_descriptor(TensorDescriptor((1, 1, 3, 3)))
        self.assertEqual(out.get_lengths(), (1, 1, 6, 6))

        cfg = PoolingConfig(PoolingMode.AVERAGE, window=(3, 1), pad=(1, 1))
        self.assertEqual(cfg.pad, (1, 1))

    def test_max_requires_padding_smaller_than_window(self):
        with self.assertRaises(ValueError):
            PoolingConfig(PoolingMode.MAX, window=2, stride=1, pad=2)

    def test_config_is_immutable_and_hashable(self):
        a = PoolingConfig(PoolingMode.MAX, window=2, stride=1, pad=1)
        b = PoolingConfig(PoolingMode.MAX, window=(2, 2), stride=(1, 1), pad=(1, 1))
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))
        with self.assertRaises(Exception):
            a.window = (3, 3)

    def test_forward_output_shapes(self):
        cases = [
            # (input lengths, window, stride, pad, expected)
            ((1, 1, 4, 4), (2, 2), (2, 2), (0, 0), (1, 1, 2, 2)),
            ((2, 3, 7, 8), (2, 2), (1, 1), (0, 0), (2, 3, 6, 7)),
            ((2, 3, 7, 8), (2, 2), (1, 1), (1, 1), (2, 3, 8, 9)),
            ((1, 2, 5, 5), (3, 3), (2, 2), (0, 0), (1, 2, 2, 2)),
            ((1, 1, 7, 6), (3, 2), (1, 2), (1, 0), (1, 1, 7, 3)),
            # window larger than the padded input still yields one cell
            ((1, 1, 2, 2), (5, 5), (1, 1), (1, 1), (1, 1, 1, 1)),
        ]
        for lengths, k, s, p, expected in cases:
            with self.subTest(lengths=lengths, window=k, stride=s, pad=p):
                cfg = PoolingConfig(PoolingMode.MAX, window=k, stride=s, pad=p)
                out = cfg.get_forward_output_descriptor(TensorDescriptor(lengths))
                self.assertEqual(out.get_lengths(), expected)

    def test_output_shape_is_deterministic(self):
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=3, stride=2, pad=1)
        desc = TensorDescriptor((2, 3, 9, 11))
        first = cfg.get_forward_output_descriptor(desc)
        for _ in range(5):
            self.assertEqual(cfg.get_forward_output_descriptor(desc), first)

    def test_describe(self):
        cfg = PoolingConfig(PoolingMode.MAX, window=2, stride=2, pad=0)
        self.assertEqual(cfg.describe(), "Max window=(2, 2) stride=(2, 2) pad=(0, 0)")


if __name__ == "__main__":
    unittest.main()
