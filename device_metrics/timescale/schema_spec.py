"""Declarative schema specification and DDL generation for the device metrics store.

One table per metric category. Points sharing (ts, device, local labels) are
coalesced into one row with a DOUBLE PRECISION column per metric name. Column
names are the dotted metric name minus the ``android.`` prefix, with dots
replaced by underscores. DDL text is deterministic so it can be snapshot-tested.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Iterable

METRIC_PREFIX = 'android.'

GLOBAL_COLUMNS = [
    ("ts", "TIMESTAMPTZ NOT NULL"),
    ("device", "TEXT NOT NULL"),
    ("application", "TEXT"),
    ("metric_category", "TEXT NOT NULL"),
    ("tags", "JSONB"),
]

@dataclass(frozen=True)
class Metric:
    kind: str  # gauge|counter
    unit: Optional[str] = None  # None when the unit varies per point (frame percentiles)
    description: Optional[str] = None
    column: Optional[str] = None  # explicit column name if different from the derived one

@dataclass(frozen=True)
class TableGroup:
    table: str
    category: str
    local_labels: List[str]
    metrics: Dict[str, Metric]
    unique_key: List[str] = field(default_factory=list)
    indexes: List[List[str]] = field(default_factory=list)


def metric_column(name: str, meta: Optional[Metric] = None) -> str:
    if meta is not None and meta.column:
        return meta.column
    if name.startswith(METRIC_PREFIX):
        name = name[len(METRIC_PREFIX):]
    return name.replace('.', '_')


def _network_metrics() -> Dict[str, Metric]:
    metrics: Dict[str, Metric] = {}
    for scope, scope_desc in (('total', 'device'), ('app', 'application')):
        for iface, iface_desc in (('mobile', 'mobile'), ('wifi', 'WiFi')):
            for direction in ('rx', 'tx'):
                metrics[f'android.network.{iface}.all.{scope}.{direction}'] = Metric(
                    kind="counter", unit="byte",
                    description=f"Cumulative {iface_desc} {direction} bytes ({scope_desc})")
                metrics[f'android.network.{iface}.speed.{scope}.{direction}'] = Metric(
                    kind="gauge", unit="byte",
                    description=f"{iface_desc} {direction} bytes per second ({scope_desc}); first sample carries the raw counter")
    return metrics


SCHEMA_SPEC: Dict[str, TableGroup] = {
    "CPU": TableGroup(
        table="android_cpu",
        category="cpu",
        local_labels=[],
        metrics={
            "android.cpu.usage.total": Metric(kind="gauge", unit="percentage", description="Device CPU usage percent of total capacity"),
            "android.cpu.usage.app": Metric(kind="gauge", unit="percentage", description="Application CPU usage percent of total capacity"),
        },
        unique_key=["ts","device"],
        indexes=[["device","ts DESC"]]
    ),
    "RAM": TableGroup(
        table="android_ram",
        category="ram",
        local_labels=[],
        metrics={
            "android.ram.total": Metric(kind="gauge", unit="byte", description="System RAM bytes"),
            "android.ram.usage.total": Metric(kind="gauge", unit="byte", description="Used system RAM bytes"),
            "android.ram.usage.app.pss": Metric(kind="gauge", unit="byte", description="Application proportional set size bytes"),
            "android.ram.usage.app.private": Metric(kind="gauge", unit="byte", description="Application private dirty bytes"),
        },
        unique_key=["ts","device"],
        indexes=[["device","ts DESC"]]
    ),
    "NET": TableGroup(
        table="android_network",
        category="network",
        local_labels=[],
        metrics=_network_metrics(),
        unique_key=["ts","device"],
        indexes=[["device","ts DESC"]]
    ),
    "BATTERY": TableGroup(
        table="android_battery",
        category="battery",
        local_labels=[],
        metrics={
            "android.battery.usage.app": Metric(kind="counter", unit="mAh", description="Application battery consumption mAh"),
        },
        unique_key=["ts","device"],
        indexes=[["device","ts DESC"]]
    ),
    # rendered/janky land in the row with percentile NULL; rendering latency gets one row per percentile
    "FRAMES": TableGroup(
        table="android_frames",
        category="frames",
        local_labels=["percentile"],
        metrics={
            "android.frames.rendered": Metric(kind="counter", unit="count", description="Frames rendered since stats reset"),
            "android.frames.janky": Metric(kind="counter", unit="count", description="Janky frames since stats reset"),
            "android.frames.rendering": Metric(kind="gauge", unit=None, description="Frame rendering latency ms at the labelled percentile"),
        },
        indexes=[["device","ts DESC"],["percentile","ts DESC"]]
    ),
}


def resolve_metric(name: str):
    """Return (group, column, meta) for a point name, or (None, None, None)."""
    for grp in SCHEMA_SPEC.values():
        meta = grp.metrics.get(name)
        if meta is not None:
            return grp, metric_column(name, meta), meta
    return None, None, None


def generate_table_ddl(group: TableGroup) -> str:
    cols: List[str] = [f"{name} {decl}" for name, decl in GLOBAL_COLUMNS]
    for lbl in group.local_labels:
        cols.append(f"{lbl} TEXT")
    for mname, meta in group.metrics.items():
        cols.append(f"{metric_column(mname, meta)} DOUBLE PRECISION")
    col_sql = ",\n  ".join(cols)
    return f"CREATE TABLE IF NOT EXISTS {group.table} (\n  {col_sql}\n);"  # hypertable creation separate


def generate_view_ddl(group: TableGroup) -> Iterable[str]:
    for mname, meta in group.metrics.items():
        col = metric_column(mname, meta)
        yield (
            f"CREATE OR REPLACE VIEW {col} AS SELECT ts, {col} AS value, "
            f"device, application, metric_category, tags" + (
                ("," + ",".join(group.local_labels)) if group.local_labels else ""
            ) + f" FROM {group.table} WHERE {col} IS NOT NULL;"
        )


def _index_name(table: str, cols: List[str], unique: bool=False) -> str:
    base = table + '_' + '_'.join([c.split()[0] for c in cols])  # strip DESC for name
    if unique:
        base = 'uniq_' + base
    return base[:60]


def generate_all_ddls() -> Dict[str, List[str]]:
    tables: List[str] = []
    views: List[str] = []
    indexes: List[str] = []
    for grp in SCHEMA_SPEC.values():
        tables.append(generate_table_ddl(grp))
        views.extend(list(generate_view_ddl(grp)))
        if grp.unique_key:
            idx_name = _index_name(grp.table, grp.unique_key, unique=True)
            cols = ','.join(grp.unique_key)
            indexes.append(f"CREATE UNIQUE INDEX IF NOT EXISTS {idx_name} ON {grp.table} ({cols});")
        for cols in grp.indexes:
            idx_name = _index_name(grp.table, cols)
            col_sql = ','.join(cols)
            indexes.append(f"CREATE INDEX IF NOT EXISTS {idx_name} ON {grp.table} ({col_sql});")
    return {"tables": tables, "views": views, "indexes": indexes}

__all__ = [
    "Metric",
    "TableGroup",
    "SCHEMA_SPEC",
    "metric_column",
    "resolve_metric",
    "generate_table_ddl",
    "generate_view_ddl",
    "generate_all_ddls",
]
