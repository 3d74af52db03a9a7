"""Per-run performance summary tree.

Each metric category owns one disjoint subtree (cpu, ram, network, battery,
frames). Category handlers run concurrently and are only ever handed their
own subtree, so no two writers touch the same field and no locking is used.
A new field must live under exactly one category.

Summary policy: StatSummary stays at its zero defaults when the source series
is empty. Callers decide emptiness from the series, not from the summary.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Sequence


@dataclass
class StatSummary:
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0


def fill_summary(target: StatSummary, values: Sequence[float], precision: int) -> bool:
    """Write avg (rounded to ``precision``), min and max of ``values`` into ``target``.

    Returns False and leaves ``target`` untouched when ``values`` is empty.
    """
    if not values:
        return False
    target.avg = round(sum(values) / len(values), precision)
    target.min = min(values)
    target.max = max(values)
    return True


def max_or_none(values: Sequence[float]) -> Optional[float]:
    return max(values) if values else None


@dataclass
class CpuResult:
    total_cpu_percentage: StatSummary = field(default_factory=StatSummary)
    application_cpu_percentage: StatSummary = field(default_factory=StatSummary)


@dataclass
class RamResult:
    system_ram_bytes: float = 0.0
    total_used_ram_bytes: StatSummary = field(default_factory=StatSummary)
    application_pss_ram_bytes: StatSummary = field(default_factory=StatSummary)
    application_private_ram_bytes: StatSummary = field(default_factory=StatSummary)


@dataclass
class RxTxBytes:
    rx_bytes: float = 0.0
    tx_bytes: float = 0.0


@dataclass
class TrafficTotal:
    total: RxTxBytes = field(default_factory=RxTxBytes)
    application: RxTxBytes = field(default_factory=RxTxBytes)


@dataclass
class NetworkTotal:
    mobile_total: TrafficTotal = field(default_factory=TrafficTotal)
    wifi_total: TrafficTotal = field(default_factory=TrafficTotal)


@dataclass
class RxTxSpeed:
    rx_bytes_per_sec: StatSummary = field(default_factory=StatSummary)
    tx_bytes_per_sec: StatSummary = field(default_factory=StatSummary)


@dataclass
class TrafficSpeed:
    total: RxTxSpeed = field(default_factory=RxTxSpeed)
    application: RxTxSpeed = field(default_factory=RxTxSpeed)


@dataclass
class NetworkSpeed:
    mobile_speed: TrafficSpeed = field(default_factory=TrafficSpeed)
    wifi_speed: TrafficSpeed = field(default_factory=TrafficSpeed)


@dataclass
class NetworkResult:
    network_total: NetworkTotal = field(default_factory=NetworkTotal)
    network_speed: NetworkSpeed = field(default_factory=NetworkSpeed)


@dataclass
class BatteryResult:
    application_mah: float = 0.0


@dataclass
class FramesResult:
    application_rendered_frames: float = 0.0
    application_janky_frames: float = 0.0


@dataclass
class PerformanceResult:
    cpu: CpuResult = field(default_factory=CpuResult)
    ram: RamResult = field(default_factory=RamResult)
    network: NetworkResult = field(default_factory=NetworkResult)
    battery: BatteryResult = field(default_factory=BatteryResult)
    frames: FramesResult = field(default_factory=FramesResult)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    'StatSummary',
    'fill_summary',
    'max_or_none',
    'CpuResult',
    'RamResult',
    'RxTxBytes',
    'TrafficTotal',
    'NetworkTotal',
    'RxTxSpeed',
    'TrafficSpeed',
    'NetworkSpeed',
    'NetworkResult',
    'BatteryResult',
    'FramesResult',
    'PerformanceResult',
]
