from __future__ import annotations

import argparse
import asyncio
import statistics
import time
from dataclasses import dataclass
from typing import List

import numpy as np

from yolo_helpers import decode_box, decode_box_async, num_output_boxes


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)) if ms_sorted else 0.0,
        p50_ms=_percentile(ms_sorted, 50.0) if ms_sorted else 0.0,
        p90_ms=_percentile(ms_sorted, 90.0) if ms_sorted else 0.0,
        p95_ms=_percentile(ms_sorted, 95.0) if ms_sorted else 0.0,
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _synthetic_output(slots: int, num_classes: int, imgsz: int, seed: int = 0) -> np.ndarray:
    # Raw detect layout (1, 4 + C, slots); most slots score low like a real head.
    rng = np.random.default_rng(seed)
    out = np.empty((1, 4 + num_classes, slots), dtype=np.float32)
    out[0, 0:2] = rng.uniform(0, imgsz, size=(2, slots))
    out[0, 2:4] = rng.uniform(5, 80, size=(2, slots))
    out[0, 4:] = rng.beta(0.3, 6.0, size=(num_classes, slots))
    return out


async def _time_async(output: np.ndarray, args: argparse.Namespace, n: int) -> List[float]:
    times: List[float] = []
    for _ in range(n):
        t0 = time.perf_counter()
        await decode_box_async(
            output,
            num_classes=args.classes,
            max_output_size=args.max_output_size,
            iou_threshold=args.iou,
            score_threshold=args.score,
        )
        times.append(time.perf_counter() - t0)
    return times


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark raw YOLO box decoding: NMS (blocking/async) vs keeping every slot."
    )
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size; sets the slot count (8400 for 640).")
    parser.add_argument("--classes", type=int, default=80, help="Number of classes in the synthetic output.")
    parser.add_argument("--max-output-size", type=int, default=100, help="Boxes kept by NMS.")
    parser.add_argument("--iou", type=float, default=0.5, help="IoU threshold for NMS.")
    parser.add_argument("--score", type=float, default=0.25, help="Score threshold for NMS.")
    parser.add_argument("--warmup", type=int, default=3, help="Warmup runs not recorded.")
    parser.add_argument("--repeats", type=int, default=20, help="Recorded runs per variant.")
    args = parser.parse_args()

    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    if args.classes < 1:
        raise ValueError("--classes must be >= 1")
    if args.max_output_size < 1:
        raise ValueError("--max-output-size must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    slots = num_output_boxes(args.imgsz, args.imgsz)
    output = _synthetic_output(slots, args.classes, args.imgsz)

    t_nms: List[float] = []
    t_all: List[float] = []
    for i in range(args.warmup + args.repeats):
        t0 = time.perf_counter()
        kept = decode_box(
            output,
            num_classes=args.classes,
            max_output_size=args.max_output_size,
            iou_threshold=args.iou,
            score_threshold=args.score,
        )
        t1 = time.perf_counter()
        decode_box(output, num_classes=args.classes)
        t2 = time.perf_counter()
        if i >= args.warmup:
            t_nms.append(t1 - t0)
            t_all.append(t2 - t1)

    t_async = asyncio.run(_time_async(output, args, args.repeats))

    print(_format_summary("decode_with_nms", _summarize_ms(t_nms)))
    print(_format_summary("decode_with_nms_async", _summarize_ms(t_async)))
    print(_format_summary("decode_all_slots", _summarize_ms(t_all)))
    print(f"slots={slots} classes={args.classes} kept={len(kept[0])} repeats={args.repeats} warmup={args.warmup}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
