import contextlib
import importlib.util
import io
import unittest
from pathlib import Path

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "verify_pool2d.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("verify_pool2d", SCRIPT)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


class TestVerifyPool2dScript(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.script = _load_script()

    def test_small_sweep_passes(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            rc = self.script.main(["--shapes", "1x1x4x4", "2x1x5x6", "--dtype", "float64"])
        self.assertEqual(rc, 0)
        self.assertIn("40 checks: 40 passed, 0 failed, 0 skipped", out.getvalue())

    def test_oversized_shape_is_reported_as_skip(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            rc = self.script.main(["--shapes", "1x1x256x257"])
        self.assertEqual(rc, 0)
        self.assertEqual(out.getvalue().count("SKIP"), 10)

    def test_bad_shape_rejected(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                self.script.main(["--shapes", "4x4"])


if __name__ == "__main__":
    unittest.main()
