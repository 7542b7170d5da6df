#!/usr/bin/env python3
"""
Assignment benchmark for owning tensors and adaptors.

Owning tensors take the evaluated temporary by swapping buffers, adaptors copy
it back into the storage they reference. This script times both paths for the
same expression so the cost of the extra copy is visible, alongside the
per-element evaluation path used by expressions without a bulk fill.
"""

from __future__ import annotations

import argparse
import math
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

import numpy as np

from strided import FunctionExpression, Ownership, Pointer, Tensor, adapt, adapt_pointer


@dataclass
class BenchmarkResult:
    target: str
    expression: str
    min_s: float
    mean_s: float
    iterations: int
    elements_per_s: Optional[float]


def build_source(*, rows: int, cols: int, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(size=(rows, cols))


def bench(fn: Callable[[], Any], *, iterations: int, warmup: int) -> Iterable[float]:
    timings = []
    for step in range(iterations + warmup):
        start = time.perf_counter()
        fn()
        elapsed = time.perf_counter() - start
        if step >= warmup:
            timings.append(elapsed)
    return timings


def make_targets(rows: int, cols: int):
    size = rows * cols
    return {
        "tensor": lambda: Tensor((rows, cols)),
        # numpy targets never grow, so they are sized for the source up front
        "numpy": lambda: adapt(np.zeros(size), (rows, cols)),
        "list": lambda: adapt([0.0] * size, (rows, cols)),
        "pointer": lambda: adapt_pointer(Pointer.allocate(size), size, Ownership.ACQUIRE, (rows, cols)),
    }


def run_case(
    target_name: str,
    factory: Callable[[], Any],
    expression_name: str,
    expression: Any,
    *,
    iterations: int,
    warmup: int,
) -> BenchmarkResult:
    destination = factory()

    def invoke():
        destination.assign(expression)

    timings = list(bench(invoke, iterations=iterations, warmup=warmup))
    min_s = min(timings)
    mean_s = sum(timings) / len(timings)
    elements = destination.size
    return BenchmarkResult(
        target=target_name,
        expression=expression_name,
        min_s=min_s,
        mean_s=mean_s,
        iterations=iterations,
        elements_per_s=elements / min_s if min_s > 0 else None,
    )


def format_results(results: Iterable[BenchmarkResult]) -> str:
    header = f"{'target':<8} {'expr':<10} {'min (ms)':>12} {'mean (ms)':>12} {'iters':>8} {'elem/s':>14}"
    rows = [header]
    for result in results:
        rate = result.elements_per_s or math.nan
        rows.append(
            f"{result.target:<8} {result.expression:<10} {result.min_s * 1e3:12.3f} "
            f"{result.mean_s * 1e3:12.3f} {result.iterations:8d} {rate:14.1f}"
        )
    return "\n".join(rows)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Benchmark swap versus copy-back assignment of strided containers."
    )
    parser.add_argument(
        "--target",
        choices=("tensor", "numpy", "list", "pointer", "all"),
        default="all",
        help="Destination container(s) to benchmark (default: all).",
    )
    parser.add_argument("--rows", type=int, default=256, help="Rows of the source (default: 256).")
    parser.add_argument("--cols", type=int, default=256, help="Columns of the source (default: 256).")
    parser.add_argument(
        "--elementwise",
        action="store_true",
        help="Also time the per-element FunctionExpression path (slow for large shapes).",
    )
    parser.add_argument(
        "--seed", type=int, default=2024, help="Random seed for the source (default: 2024)."
    )
    parser.add_argument(
        "--iterations", type=int, default=20, help="Timed iterations per case (default: 20)."
    )
    parser.add_argument(
        "--warmup", type=int, default=3, help="Warmup iterations to discard (default: 3)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    if args.rows <= 0 or args.cols <= 0:
        print("Shape extents must be positive.", file=sys.stderr)
        return 1
    source = build_source(rows=args.rows, cols=args.cols, seed=args.seed)
    expressions = [("array", source)]
    if args.elementwise:
        expressions.append(
            ("function", FunctionExpression(source.shape, lambda i, j: source[i, j]))
        )

    targets = make_targets(args.rows, args.cols)
    requested = list(targets) if args.target == "all" else [args.target]
    results: List[BenchmarkResult] = []
    for target_name in requested:
        for expression_name, expression in expressions:
            results.append(
                run_case(
                    target_name,
                    targets[target_name],
                    expression_name,
                    expression,
                    iterations=args.iterations,
                    warmup=args.warmup,
                )
            )
    print(format_results(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
