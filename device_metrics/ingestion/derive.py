"""Derived device metrics: percentages, unit conversions and counter rates."""
from __future__ import annotations
from typing import Iterator, List, Optional, Sequence, Tuple

from .samples import Sample

BYTES_PER_KIB = 1024.0


def cpu_total_percent(cpu_total: float, idle: float) -> float:
    return round((cpu_total - idle) / cpu_total * 100.0, 2)


def cpu_app_percent(cpu_total: float, app: float) -> float:
    return round(app / cpu_total * 100.0, 2)


def kib_to_bytes(kib: float) -> float:
    return kib * BYTES_PER_KIB


def ram_used_bytes(system_ram: float, free_kib: float) -> float:
    return system_ram - kib_to_bytes(free_kib)


def iter_rates(samples: Sequence[Sample]) -> Iterator[Tuple[Sample, Tuple[float, ...]]]:
    """Yield (sample, per-counter rates) for cumulative counter samples.

    Rate = round((current - previous) / delta_seconds, 2) per counter, where
    delta_seconds is the elapsed time truncated to whole seconds.

    The first sample has nothing to diff against: its raw cumulative values are
    yielded as its rates and it becomes the baseline. A later sample whose
    delta_seconds is 0 yields nothing and leaves the baseline untouched, so
    the next rate is measured from the last sample that produced one.
    """
    previous: Optional[Sample] = None
    for sample in samples:
        if previous is None:
            previous = sample
            yield sample, tuple(sample.values)
            continue
        delta = int((sample.ts - previous.ts).total_seconds())
        if delta == 0:
            continue
        rates = tuple(
            round((cur - prev) / delta, 2)
            for cur, prev in zip(sample.values, previous.values)
        )
        previous = sample
        yield sample, rates


def column(samples: Sequence[Sample], index: int) -> List[float]:
    return [s.values[index] for s in samples]


__all__ = [
    'cpu_total_percent',
    'cpu_app_percent',
    'kib_to_bytes',
    'ram_used_bytes',
    'iter_rates',
    'column',
]
