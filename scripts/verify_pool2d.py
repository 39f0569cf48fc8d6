"""
scripts/verify_pool2d.py

Reference vs accelerated 2D pooling verification driver (NOT a unit test).

Runs the default window/stride/padding sweep, in both max and average modes,
over a set of generated input tensors, and reports every case where the
accelerated backend disagrees with the host reference.

Usage
-----
python scripts/verify_pool2d.py
python scripts/verify_pool2d.py --dtype float64
python scripts/verify_pool2d.py --shapes 1x1x4x4 2x3x7x8 --seed 3 --workers 4
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Tuple

import numpy as np

# -------------------------
# Make repo_root/src importable
# -------------------------
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from poolparity.infrastructure.backends import get_backend
from poolparity.infrastructure.pooling import AcceleratedExecutor, ReferenceExecutor
from poolparity.infrastructure.tensor import DEFAULT_INPUT_SHAPES
from poolparity.infrastructure.verify import verify_pooling_shapes


def _parse_shape(text: str) -> Tuple[int, int, int, int]:
    parts = text.lower().split("x")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"Expected NxCxHxW, got {text!r}")
    try:
        return tuple(int(p) for p in parts)  # type: ignore[return-value]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected NxCxHxW, got {text!r}") from None


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[3])
    ap.add_argument("--device", default="host", help="accelerator device (host)")
    ap.add_argument("--dtype", choices=["float32", "float64"], default="float32")
    ap.add_argument(
        "--shapes",
        nargs="+",
        type=_parse_shape,
        default=list(DEFAULT_INPUT_SHAPES),
        help="input shapes as NxCxHxW",
    )
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--workers", type=int, default=None)
    ap.add_argument("--verbose", "-v", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    backend = get_backend(args.device)
    report = verify_pooling_shapes(
        args.shapes,
        dtype=np.dtype(args.dtype),
        seed=args.seed,
        reference=ReferenceExecutor(workers=args.workers),
        accelerated=AcceleratedExecutor(backend),
    )

    print(f"device={args.device} dtype={args.dtype}: {report.summary()}")
    for m in report.mismatches:
        print(f"  FAIL {m}")
    for s in report.skipped:
        print(f"  SKIP {s.context}: {s.reason}")
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
