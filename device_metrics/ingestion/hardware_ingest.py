"""Concurrent extraction of hardware metrics after a test run.

Five category handlers run as independent units on a thread pool. Each unit
receives only its own subtree of the shared PerformanceResult and returns its
own point list, so the shared tree is written without locks. The orchestrator
joins exactly those five units, then persists all points with a single
writer call.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from .handlers import (
    DeviceContext,
    CancelSignal,
    CategoryHandler,
    CpuMetricsHandler,
    RamMetricsHandler,
    NetworkMetricsHandler,
    BatteryMetricsHandler,
    FramesMetricsHandler,
)
from .points import MetricPoint
from ..results import PerformanceResult
from ..debug_util import dbg, logger


def _category_units(
    context: DeviceContext,
    collector,
    result: PerformanceResult,
    cancel_signal: CancelSignal,
) -> List[Tuple[CategoryHandler, object]]:
    """Pair every handler with the only result subtree it may write."""
    return [
        (CpuMetricsHandler(context, collector, cancel_signal), result.cpu),
        (RamMetricsHandler(context, collector, cancel_signal), result.ram),
        (NetworkMetricsHandler(context, collector, cancel_signal), result.network),
        (BatteryMetricsHandler(context, collector, cancel_signal), result.battery),
        (FramesMetricsHandler(context, collector, cancel_signal), result.frames),
    ]


def extract_and_save_metrics(
    context: DeviceContext,
    collector,
    writer,
    result: Optional[PerformanceResult] = None,
    cancel_event: Optional[threading.Event] = None,
) -> PerformanceResult:
    """Extract every hardware category for one device and persist the points.

    Args:
        context: device identity and common tags for the run
        collector: object exposing read_file(device, file_name, cancel_event=None) -> str
        writer: object exposing save_points(points)
        result: summary tree to populate (a fresh one is created if omitted)
        cancel_event: once set by the caller, pending fetches return empty payloads

    Returns:
        The populated PerformanceResult.

    The first category failure (collector error or cancellation raised by the
    collector) sets a run-private abort event so the remaining categories stop
    fetching; cancel_event itself is never set here. After all units finish
    the failure is re-raised and nothing is persisted.
    """
    if result is None:
        result = PerformanceResult()
    abort_event = threading.Event()
    cancel_signal = CancelSignal(cancel_event, abort_event)
    device = context.device

    logger.info('[Android: %s] start to handle hardware metrics', device)
    start_time = time.time()

    units = _category_units(context, collector, result, cancel_signal)
    points_by_category = {}
    first_error: Optional[BaseException] = None

    with ThreadPoolExecutor(max_workers=len(units), thread_name_prefix="MetricsWorker") as executor:
        future_to_category = {
            executor.submit(handler.extract, subtree): handler.category
            for handler, subtree in units
        }
        for future in as_completed(future_to_category):
            category = future_to_category[future]
            try:
                points_by_category[category] = future.result()
            except Exception as e:
                dbg(f'[Android: {device}] category_error category={category} err={e.__class__.__name__}:{e}')
                if first_error is None:
                    first_error = e
                    abort_event.set()

    if first_error is not None:
        raise first_error

    points: List[MetricPoint] = []
    for handler, _ in units:
        points.extend(points_by_category.get(handler.category, []))

    writer.save_points(points)

    dbg(f'[Android: {device}] hardware metrics saved points={len(points)} '
        f'time={time.time() - start_time:.2f}s writer_stats={writer.stats() if hasattr(writer, "stats") else None}')
    logger.info('[Android: %s] stop to handle hardware metrics', device)
    return result


__all__ = ['extract_and_save_metrics']
