import unittest

import numpy as np

from poolparity.domain._errors import (
    DeviceNotSupportedError,
    IndexRangeError,
    ShapeMismatchError,
)
from poolparity.domain._pooling import PoolingConfig, PoolingMode
from poolparity.domain._tensor import TensorDescriptor
from poolparity.infrastructure.backends import HostDeviceBackend, get_backend
from poolparity.infrastructure.pooling import (
    AcceleratedExecutor,
    DeviceScope,
    ReferenceExecutor,
)
from poolparity.infrastructure.tensor._tensor import Tensor
from poolparity.infrastructure.tensor._tensor_builder import arange, rand


class _FailingBackwardBackend(HostDeviceBackend):
    def pooling_backward(self, *args, **kwargs):
        raise RuntimeError("kernel launch failed")


class TestHostDeviceBackendMemory(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = HostDeviceBackend()

    def test_write_read_roundtrip_copies(self):
        host = np.arange(12, dtype=np.float64)
        dev = self.backend.write(host)
        host[:] = -1.0

        out = self.backend.read(dev, 12, np.float64)
        np.testing.assert_array_equal(out, np.arange(12, dtype=np.float64))
        self.backend.free(dev)
        self.assertEqual(self.backend.live_allocations(), 0)

    def test_memset_zero(self):
        dev = self.backend.write(np.ones(5, dtype=np.float32))
        self.backend.memset_zero(dev)
        np.testing.assert_array_equal(
            self.backend.read(dev, 5, np.float32), np.zeros(5, dtype=np.float32)
        )
        self.backend.free(dev)

    def test_double_free_raises(self):
        dev = self.backend.allocate(np.float32, 4)
        self.backend.free(dev)
        with self.assertRaises(RuntimeError):
            self.backend.free(dev)

    def test_free_null_is_noop(self):
        self.backend.free(0)
        self.assertEqual(self.backend.live_allocations(), 0)

    def test_handles_are_never_zero(self):
        devs = [self.backend.allocate(np.float32, 1) for _ in range(3)]
        self.assertNotIn(0, devs)
        self.assertEqual(len(set(devs)), 3)
        for d in devs:
            self.backend.free(d)

    def test_forward_rejects_wrong_output_descriptor(self):
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=2)
        in_desc = TensorDescriptor((1, 1, 4, 4))
        x_dev = self.backend.write(np.zeros(16, dtype=np.float32))
        y_dev = self.backend.allocate(np.float32, 9)
        with self.assertRaises(ValueError):
            self.backend.pooling_forward(
                cfg,
                in_desc,
                x_dev,
                TensorDescriptor((1, 1, 3, 3)),
                y_dev,
                False,
                None,
                0,
                np.float32,
            )

    def test_forward_rejects_small_index_buffer(self):
        cfg = PoolingConfig(PoolingMode.MAX, window=2)
        in_desc = TensorDescriptor((1, 1, 4, 4))
        out_desc = cfg.get_forward_output_descriptor(in_desc)
        x_dev = self.backend.write(np.zeros(16, dtype=np.float32))
        y_dev = self.backend.allocate(np.float32, 4)
        idx_dev = self.backend.allocate(np.uint16, 2)
        with self.assertRaises(ValueError):
            self.backend.pooling_forward(
                cfg, in_desc, x_dev, out_desc, y_dev, True, idx_dev, 4, np.float32
            )

    def test_forward_rejects_unsupported_dtype(self):
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=2)
        in_desc = TensorDescriptor((1, 1, 2, 2))
        out_desc = cfg.get_forward_output_descriptor(in_desc)
        x_dev = self.backend.write(np.zeros(4, dtype=np.float16))
        y_dev = self.backend.allocate(np.float16, 1)
        with self.assertRaises(TypeError):
            self.backend.pooling_forward(
                cfg, in_desc, x_dev, out_desc, y_dev, False, None, 0, np.float16
            )


class TestGetBackend(unittest.TestCase):
    def test_host_backend(self):
        backend = get_backend("host")
        self.assertIsInstance(backend, HostDeviceBackend)
        self.assertEqual(AcceleratedExecutor(backend).name, "host")

    def test_cpu_has_no_accelerator(self):
        with self.assertRaises(DeviceNotSupportedError):
            get_backend("cpu")

    def test_unknown_device_rejected(self):
        for name in ["cuda:0", "gpu"]:
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    get_backend(name)

    def test_tensor_rejects_unsupported_dtype(self):
        with self.assertRaises(TypeError):
            Tensor((1, 1, 2, 2), dtype=np.float16)


class TestAcceleratedExecutor(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = HostDeviceBackend()
        self.acc = AcceleratedExecutor(self.backend)
        self.ref = ReferenceExecutor()

    def test_forward_backward_match_reference_and_release_buffers(self):
        x = rand((2, 3, 7, 8), rng=np.random.default_rng(11))
        for mode in (PoolingMode.MAX, PoolingMode.AVERAGE):
            with self.subTest(mode=mode):
                cfg = PoolingConfig(mode, window=3, stride=1, pad=1)
                y_ref, idx_ref = self.ref.forward(x, cfg)
                y_acc, idx_acc = self.acc.forward(x, cfg)
                np.testing.assert_allclose(y_acc.data, y_ref.data, rtol=1e-5, atol=1e-5)
                if mode is PoolingMode.MAX:
                    self.assertEqual(idx_acc.dtype, np.uint16)
                    np.testing.assert_array_equal(idx_acc, idx_ref)
                else:
                    self.assertIsNone(idx_acc)

                dy = rand(y_ref.shape, rng=np.random.default_rng(12))
                dx_ref = self.ref.backward(x, dy, y_ref, cfg, idx_ref)
                dx_acc = self.acc.backward(x, dy, y_ref, cfg, idx_acc)
                np.testing.assert_allclose(dx_acc.data, dx_ref.data, rtol=1e-4, atol=1e-4)
                self.assertEqual(self.backend.live_allocations(), 0)

    def test_results_do_not_alias_inputs(self):
        x = arange((1, 1, 4, 4))
        cfg = PoolingConfig(PoolingMode.AVERAGE, window=2)
        y, _ = self.acc.forward(x, cfg)
        x.fill(100.0)
        np.testing.assert_allclose(y.data.reshape(-1), [2.5, 4.5, 10.5, 12.5])

    def test_buffers_released_when_kernel_fails(self):
        backend = _FailingBackwardBackend()
        acc = AcceleratedExecutor(backend)
        cfg = PoolingConfig(PoolingMode.MAX, window=2)
        x = arange((1, 1, 4, 4))
        y, idx = acc.forward(x, cfg)

        with self.assertRaises(RuntimeError):
            acc.backward(x, Tensor.like(y).fill(1.0), y, cfg, idx)
        self.assertEqual(backend.live_allocations(), 0)

    def test_backward_shape_checks_happen_before_staging(self):
        cfg = PoolingConfig(PoolingMode.MAX, window=2)
        x = arange((1, 1, 4, 4))
        y, idx = self.acc.forward(x, cfg)

        with self.assertRaises(ShapeMismatchError):
            self.acc.backward(x, Tensor((1, 1, 1, 2)), y, cfg, idx)
        with self.assertRaises(ShapeMismatchError):
            self.acc.backward(x, Tensor.like(y), y, cfg, None)
        self.assertEqual(self.backend.live_allocations(), 0)

    def test_index_range_guard(self):
        x = Tensor((1, 1, 256, 257))
        with self.assertRaises(IndexRangeError):
            self.acc.forward(x, PoolingConfig(PoolingMode.MAX, window=2))
        self.assertEqual(self.backend.live_allocations(), 0)

    def test_average_accepts_large_planes(self):
        x = Tensor((1, 1, 256, 257)).fill(2.0)
        y, idx = self.acc.forward(x, PoolingConfig(PoolingMode.AVERAGE, window=2))
        self.assertIsNone(idx)
        self.assertTrue(np.all(y.data == 2.0))


class TestDeviceScope(unittest.TestCase):
    def test_release_on_exception(self):
        backend = HostDeviceBackend()
        with self.assertRaises(KeyError):
            with DeviceScope(backend) as scope:
                scope.allocate(np.float32, 8)
                scope.write(np.ones(3, dtype=np.float64))
                raise KeyError("boom")
        self.assertEqual(backend.live_allocations(), 0)

    def test_release_error_does_not_mask_original(self):
        backend = HostDeviceBackend()
        with self.assertRaises(KeyError):
            with DeviceScope(backend) as scope:
                dev = scope.allocate(np.float32, 8)
                backend.free(dev)
                raise KeyError("boom")

    def test_release_error_raised_on_clean_exit(self):
        backend = HostDeviceBackend()
        with self.assertLogs("poolparity.infrastructure.pooling._device_scope", "ERROR"):
            with self.assertRaises(RuntimeError):
                with DeviceScope(backend) as scope:
                    dev = scope.allocate(np.float32, 8)
                    backend.free(dev)


if __name__ == "__main__":
    unittest.main()
