"""Category handlers for hardware metrics captured on an Android device.

One handler per category (CPU, RAM, NET, BATTERY, FRAMES). A handler owns the
whole path for its category: fetch backing files, parse, derive, fill its own
result subtree and build points. Handlers never flush; they return their
points to the orchestrator, which persists the union in one call.
"""
from __future__ import annotations
import re
import threading
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .points import (
    MetricPoint, build_point,
    UNIT_PERCENTAGE, UNIT_BYTE, UNIT_MAH, UNIT_COUNT, PERCENTILE_UNITS,
)
from .samples import Sample, parse_file_samples, parse_frame_blocks, parse_scalar
from .derive import (
    cpu_total_percent, cpu_app_percent, kib_to_bytes, ram_used_bytes, iter_rates, column,
)
from ..results import (
    CpuResult, RamResult, NetworkResult, BatteryResult, FramesResult,
    RxTxBytes, RxTxSpeed, fill_summary, max_or_none,
)
from ..debug_util import dbg

CPU_TOTAL_FILE = 'cpu_total.txt'
CPU_USAGE_TOTAL_FILE = 'cpu_usage_total.txt'
CPU_USAGE_APP_FILE = 'cpu_usage_app.txt'
RAM_TOTAL_FILE = 'ram_total.txt'
RAM_USAGE_TOTAL_FILE = 'ram_usage_total.txt'
RAM_USAGE_APP_FILE = 'ram_usage_app.txt'
NETWORK_USAGE_TOTAL_FILE = 'network_usage_total.txt'
NETWORK_USAGE_APP_FILE = 'network_usage_app.txt'
BATTERY_APP_FILE = 'battery_app.txt'
FRAMES_APP_FILE = 'frames_app.txt'

PERCENT_PRECISION = 2
BYTES_PRECISION = 0
RATE_PRECISION = 2


class DeviceContext:
    """Device identity plus the tag set shared by every point of one run."""

    def __init__(self, device: str, application: Optional[str] = None, run_tags: Optional[Mapping[str, str]] = None):
        self.device = device
        self.application = application
        tags: Dict[str, str] = {'device': device}
        if application:
            tags['application'] = application
        for k, v in (run_tags or {}).items():
            tags[k] = str(v)
        self.common_tags: Mapping[str, str] = MappingProxyType(tags)


class CancelSignal:
    """Reads as set once any of the watched events is set."""

    def __init__(self, *events: Optional[threading.Event]):
        self._events = [e for e in events if e is not None]

    def is_set(self) -> bool:
        return any(e.is_set() for e in self._events)


class CategoryHandler:
    category = ''

    def __init__(self, context: DeviceContext, collector, cancel_event=None):
        # cancel_event: threading.Event or CancelSignal, anything with is_set()
        self.context = context
        self.collector = collector
        self.cancel_event = cancel_event

    def fetch(self, file_name: str) -> str:
        if self.cancel_event is not None and self.cancel_event.is_set():
            dbg(f'[Android: {self.context.device}] {self.category} fetch_skipped_cancelled file={file_name}')
            return ''
        return self.collector.read_file(self.context.device, file_name, cancel_event=self.cancel_event)

    def point(self, name: str, sample: Sample, value: float, unit: str, extra_tags: Optional[Mapping[str, str]] = None) -> MetricPoint:
        tags = self.context.common_tags
        if extra_tags:
            tags = {**tags, **extra_tags}
        return build_point(name, tags, sample.ts, value, unit)

    def extract(self, result) -> List[MetricPoint]:
        raise NotImplementedError

    def _done(self, points: List[MetricPoint]) -> None:
        dbg(f'[Android: {self.context.device}] stop to handle {self.category} metrics points={len(points)}')


class CpuMetricsHandler(CategoryHandler):
    category = 'CPU'

    def extract(self, result: CpuResult) -> List[MetricPoint]:
        cpu_total = parse_scalar(self.fetch(CPU_TOTAL_FILE), suffix='%cpu')
        usage_total_raw = re.sub('%idle', '', self.fetch(CPU_USAGE_TOTAL_FILE), flags=re.IGNORECASE)
        usage_app_raw = self.fetch(CPU_USAGE_APP_FILE)
        points: List[MetricPoint] = []
        if not cpu_total:
            # capacity unknown or zero; percentages cannot be derived
            dbg(f'[Android: {self.context.device}] CPU total capacity unavailable, skipping usage series')
            self._done(points)
            return points

        total_values: List[float] = []
        for s in parse_file_samples(CPU_USAGE_TOTAL_FILE, usage_total_raw):
            value = cpu_total_percent(cpu_total, s.values[0])
            points.append(self.point('android.cpu.usage.total', s, value, UNIT_PERCENTAGE))
            total_values.append(value)
        fill_summary(result.total_cpu_percentage, total_values, PERCENT_PRECISION)

        app_values: List[float] = []
        for s in parse_file_samples(CPU_USAGE_APP_FILE, usage_app_raw):
            value = cpu_app_percent(cpu_total, s.values[0])
            points.append(self.point('android.cpu.usage.app', s, value, UNIT_PERCENTAGE))
            app_values.append(value)
        fill_summary(result.application_cpu_percentage, app_values, PERCENT_PRECISION)

        self._done(points)
        return points


class RamMetricsHandler(CategoryHandler):
    category = 'RAM'

    def extract(self, result: RamResult) -> List[MetricPoint]:
        system_ram = parse_scalar(self.fetch(RAM_TOTAL_FILE))
        usage_total_raw = self.fetch(RAM_USAGE_TOTAL_FILE)
        usage_app_raw = self.fetch(RAM_USAGE_APP_FILE)
        points: List[MetricPoint] = []

        if system_ram is None:
            dbg(f'[Android: {self.context.device}] RAM total unavailable, skipping system usage series')
        else:
            result.system_ram_bytes = system_ram
            used_values: List[float] = []
            for s in parse_file_samples(RAM_USAGE_TOTAL_FILE, usage_total_raw):
                used = ram_used_bytes(system_ram, s.values[0])
                points.append(self.point('android.ram.total', s, system_ram, UNIT_BYTE))
                points.append(self.point('android.ram.usage.total', s, used, UNIT_BYTE))
                used_values.append(round(used, BYTES_PRECISION))
            fill_summary(result.total_used_ram_bytes, used_values, BYTES_PRECISION)

        app_samples = parse_file_samples(RAM_USAGE_APP_FILE, usage_app_raw)
        for s in app_samples:
            pss_kib, private_kib = s.values
            points.append(self.point('android.ram.usage.app.pss', s, kib_to_bytes(pss_kib), UNIT_BYTE))
            points.append(self.point('android.ram.usage.app.private', s, kib_to_bytes(private_kib), UNIT_BYTE))
        fill_summary(
            result.application_pss_ram_bytes,
            [round(kib_to_bytes(v), BYTES_PRECISION) for v in column(app_samples, 0)],
            BYTES_PRECISION,
        )
        fill_summary(
            result.application_private_ram_bytes,
            [round(kib_to_bytes(v), BYTES_PRECISION) for v in column(app_samples, 1)],
            BYTES_PRECISION,
        )

        self._done(points)
        return points


# Counter order inside network sample lines: (interface, direction)
NETWORK_COUNTERS = (('mobile', 'rx'), ('mobile', 'tx'), ('wifi', 'rx'), ('wifi', 'tx'))


class NetworkMetricsHandler(CategoryHandler):
    category = 'NET'

    def extract(self, result: NetworkResult) -> List[MetricPoint]:
        total_raw = self.fetch(NETWORK_USAGE_TOTAL_FILE)
        app_raw = self.fetch(NETWORK_USAGE_APP_FILE)
        totals = result.network_total
        speeds = result.network_speed
        points: List[MetricPoint] = []

        points.extend(self._scope(
            parse_file_samples(NETWORK_USAGE_TOTAL_FILE, total_raw),
            'total',
            {'mobile': totals.mobile_total.total, 'wifi': totals.wifi_total.total},
            {'mobile': speeds.mobile_speed.total, 'wifi': speeds.wifi_speed.total},
        ))
        points.extend(self._scope(
            parse_file_samples(NETWORK_USAGE_APP_FILE, app_raw),
            'app',
            {'mobile': totals.mobile_total.application, 'wifi': totals.wifi_total.application},
            {'mobile': speeds.mobile_speed.application, 'wifi': speeds.wifi_speed.application},
        ))

        self._done(points)
        return points

    def _scope(
        self,
        samples: List[Sample],
        scope: str,
        totals: Dict[str, RxTxBytes],
        speeds: Dict[str, RxTxSpeed],
    ) -> List[MetricPoint]:
        """Cumulative and rate points for one counter scope (total or app).

        Counters are monotonic, so the maximum observed value stands in for the
        final cumulative traffic.
        """
        points: List[MetricPoint] = []
        for s in samples:
            for (iface, direction), value in zip(NETWORK_COUNTERS, s.values):
                points.append(self.point(f'android.network.{iface}.all.{scope}.{direction}', s, value, UNIT_BYTE))
        for i, (iface, direction) in enumerate(NETWORK_COUNTERS):
            peak = max_or_none(column(samples, i))
            if peak is not None:
                setattr(totals[iface], f'{direction}_bytes', peak)

        rate_series: List[List[float]] = [[] for _ in NETWORK_COUNTERS]
        for s, rates in iter_rates(samples):
            for i, ((iface, direction), rate) in enumerate(zip(NETWORK_COUNTERS, rates)):
                points.append(self.point(f'android.network.{iface}.speed.{scope}.{direction}', s, rate, UNIT_BYTE))
                rate_series[i].append(rate)
        for (iface, direction), series in zip(NETWORK_COUNTERS, rate_series):
            fill_summary(getattr(speeds[iface], f'{direction}_bytes_per_sec'), series, RATE_PRECISION)
        return points


class BatteryMetricsHandler(CategoryHandler):
    category = 'BATTERY'

    def extract(self, result: BatteryResult) -> List[MetricPoint]:
        samples = parse_file_samples(BATTERY_APP_FILE, self.fetch(BATTERY_APP_FILE))
        points = [self.point('android.battery.usage.app', s, s.values[0], UNIT_MAH) for s in samples]
        peak = max_or_none(column(samples, 0))
        if peak is not None:
            result.application_mah = peak
        self._done(points)
        return points


class FramesMetricsHandler(CategoryHandler):
    category = 'FRAMES'

    def extract(self, result: FramesResult) -> List[MetricPoint]:
        samples = parse_frame_blocks(self.fetch(FRAMES_APP_FILE))
        points: List[MetricPoint] = []
        for s in samples:
            rendered, janky = s.values[0], s.values[1]
            points.append(self.point('android.frames.rendered', s, rendered, UNIT_COUNT))
            points.append(self.point('android.frames.janky', s, janky, UNIT_COUNT))
            for unit, latency in zip(PERCENTILE_UNITS, s.values[2:]):
                points.append(self.point('android.frames.rendering', s, latency, unit, {'percentile': unit}))
        rendered_peak = max_or_none(column(samples, 0))
        if rendered_peak is not None:
            result.application_rendered_frames = rendered_peak
        janky_peak = max_or_none(column(samples, 1))
        if janky_peak is not None:
            result.application_janky_frames = janky_peak
        self._done(points)
        return points


__all__ = [
    'DeviceContext',
    'CancelSignal',
    'CategoryHandler',
    'CpuMetricsHandler',
    'RamMetricsHandler',
    'NetworkMetricsHandler',
    'BatteryMetricsHandler',
    'FramesMetricsHandler',
    'NETWORK_COUNTERS',
]
