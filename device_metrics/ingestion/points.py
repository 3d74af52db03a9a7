from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping

UNIT_PERCENTAGE = 'percentage'
UNIT_BYTE = 'byte'
UNIT_MAH = 'mAh'
UNIT_COUNT = 'count'
PERCENTILE_UNITS = ('pct50', 'pct90', 'pct95', 'pct99')


@dataclass(frozen=True)
class MetricPoint:
    name: str
    tags: Dict[str, str]
    timestamp: datetime
    value: float
    unit: str


def build_point(name: str, tags: Mapping[str, str], timestamp: datetime, value: float, unit: str) -> MetricPoint:
    """Build a time-series point; tags are copied so the point never aliases caller state."""
    return MetricPoint(name, dict(tags), timestamp, float(value), unit)


__all__ = [
    'MetricPoint',
    'build_point',
    'UNIT_PERCENTAGE',
    'UNIT_BYTE',
    'UNIT_MAH',
    'UNIT_COUNT',
    'PERCENTILE_UNITS',
]
