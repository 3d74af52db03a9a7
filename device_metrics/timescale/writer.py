"""TimescaleWriter persisting device metric points, with optional COPY.

Surface used by the orchestrator: save_points(points). Lower level:
add(point), flush(), stats().

Without a DSN (constructor or TIMESCALE_DSN) the writer runs dry: rows are
coalesced and counted, then discarded on flush. Database errors during flush
roll back the transaction and propagate to the caller; nothing is retried.
"""
from __future__ import annotations
import os
import time
from typing import List, Dict, Any, Iterable, Optional, Tuple
from dataclasses import dataclass

from ..ingestion.points import MetricPoint
from .schema_spec import SCHEMA_SPEC, TableGroup, metric_column, resolve_metric
from ..debug_util import dbg

BASE_COLUMNS = ("ts", "device", "application", "metric_category", "tags")


@dataclass
class _PendingRow:
    table: str
    key: Tuple[Any, ...]  # composite key identifying a coalesced logical row
    values: Dict[str, Any]  # column -> value


@dataclass
class _FlushTimings:
    total: float = 0.0
    last: float = 0.0
    peak: float = 0.0

    def record(self, seconds: float) -> None:
        self.last = seconds
        self.total += seconds
        self.peak = max(self.peak, seconds)


class TimescaleWriter:
    def __init__(self, batch_size: int = 2000, dsn: Optional[str] = None, insert_page_size: int = 200, use_copy: Optional[bool] = None):
        """Timescale writer accumulating coalesced rows then inserting per table.

        Parameters:
            batch_size: coalesced rows kept in memory before add() flushes automatically;
                save_points() always writes its whole batch in one flush.
            dsn: PostgreSQL/Timescale connection string (default: TIMESCALE_DSN).
            insert_page_size: rows per executemany page.
            use_copy: use COPY FROM STDIN instead of INSERT. If None, reads
                DEVICE_METRICS_USE_COPY_COMMAND (default: False).
        """
        # Environment only overrides defaults, never explicit caller values
        if 'DEVICE_METRICS_BATCH_SIZE' in os.environ and batch_size == 2000:
            try:
                batch_size = int(os.environ['DEVICE_METRICS_BATCH_SIZE'])
            except ValueError:
                pass
        if 'DEVICE_METRICS_INSERT_PAGE_SIZE' in os.environ and insert_page_size == 200:
            try:
                insert_page_size = int(os.environ['DEVICE_METRICS_INSERT_PAGE_SIZE'])
            except ValueError:
                pass
        self.batch_size = max(1, batch_size)
        self.insert_page_size = max(25, insert_page_size)
        if use_copy is None:
            use_copy = os.environ.get('DEVICE_METRICS_USE_COPY_COMMAND', '').lower() in ('true', '1', 'yes')
        self.use_copy = use_copy

        self._pending: Dict[Tuple[Any, ...], _PendingRow] = {}
        self.total_points_added = 0
        self.total_points_ignored = 0
        self.total_rows_added = 0
        self.total_flushes = 0
        self.total_rows_flushed = 0
        self.dsn = dsn or os.environ.get('TIMESCALE_DSN')
        self._timings = _FlushTimings()
        self._conn = None
        self._ensure_connection()

    def _ensure_connection(self):
        if self.dsn and self._conn is None:
            try:
                import psycopg
                self._conn = psycopg.connect(self.dsn)
                dbg('timescale_connect_ok')
            except Exception as e:
                dbg(f'timescale_connect_fail err={e.__class__.__name__}:{e}')
                self._conn = None

    def add(self, point: MetricPoint, auto_flush: bool = True):
        """Coalesce one point into its pending row.

        With auto_flush, starting a new row while batch_size rows are pending
        flushes them first. save_points disables it so a row is never split
        across two flushes.
        """
        grp, metric_col, meta = resolve_metric(point.name)
        if not grp:
            self.total_points_ignored += 1
            dbg(f'timescale_unknown_metric name={point.name}')
            return
        if meta.unit and point.unit != meta.unit:
            dbg(f'timescale_unit_mismatch name={point.name} unit={point.unit} expected={meta.unit}')
        tags = point.tags or {}
        key = (grp.table, point.timestamp, tags.get('device'), *(tags.get(lbl) for lbl in grp.local_labels))
        pending = self._pending.get(key)
        if auto_flush and pending is None and len(self._pending) >= self.batch_size:
            self.flush()
        if pending is None:
            base: Dict[str, Any] = {
                'ts': point.timestamp,
                'device': tags.get('device'),
                'application': tags.get('application'),
                'metric_category': grp.category,
                'tags': {k: v for k, v in tags.items() if k not in grp.local_labels},
            }
            for lbl in grp.local_labels:
                base[lbl] = tags.get(lbl)
            for mname, m in grp.metrics.items():
                base.setdefault(metric_column(mname, m), None)
            pending = _PendingRow(grp.table, key, base)
            self._pending[key] = pending
            self.total_rows_added += 1
        pending.values[metric_col] = point.value
        self.total_points_added += 1

    def save_points(self, points: Iterable[MetricPoint]) -> None:
        """Persist one batch with a single flush, whatever its size."""
        for p in points:
            self.add(p, auto_flush=False)
        self.flush()

    def serialize_batches(self) -> Dict[str, List[_PendingRow]]:
        per_table: Dict[str, List[_PendingRow]] = {}
        for r in self._pending.values():
            per_table.setdefault(r.table, []).append(r)
        return per_table

    @staticmethod
    def _columns(grp: TableGroup) -> List[str]:
        metric_cols = sorted(metric_column(m, meta) for m, meta in grp.metrics.items())
        return list(BASE_COLUMNS) + list(grp.local_labels) + metric_cols

    @staticmethod
    def _row_values(row: _PendingRow, col_list: List[str]) -> Tuple[Any, ...]:
        from psycopg.types.json import Jsonb
        out: List[Any] = []
        for c in col_list:
            v = row.values.get(c)
            out.append(Jsonb(v) if c == 'tags' and v is not None else v)
        return tuple(out)

    def _flush_with_copy(self, table: str, rows: List[_PendingRow], col_list: List[str]) -> None:
        with self._conn.cursor() as cur:
            with cur.copy(f"COPY {table} ({','.join(col_list)}) FROM STDIN") as copy:
                for r in rows:
                    copy.write_row(self._row_values(r, col_list))
        dbg(f'timescale_copy_ok table={table} rows={len(rows)}')

    def _flush_with_insert(self, table: str, rows: List[_PendingRow], col_list: List[str]) -> None:
        placeholders = '(' + ','.join(['%s'] * len(col_list)) + ')'
        sql = f"INSERT INTO {table} ({','.join(col_list)}) VALUES {placeholders}"
        with self._conn.cursor() as cur:
            for i in range(0, len(rows), self.insert_page_size):
                page = rows[i:i + self.insert_page_size]
                cur.executemany(sql, [self._row_values(r, col_list) for r in page])
        dbg(f'timescale_insert_ok table={table} rows={len(rows)} page_size={self.insert_page_size}')

    def flush(self):
        if not self._pending:
            return
        flush_start = time.time()
        batches = self.serialize_batches()
        try:
            if self._conn is not None:
                for table, rows in batches.items():
                    grp = next(g for g in SCHEMA_SPEC.values() if g.table == table)
                    col_list = self._columns(grp)
                    if self.use_copy:
                        self._flush_with_copy(table, rows, col_list)
                    else:
                        self._flush_with_insert(table, rows, col_list)
                self._conn.commit()
            else:
                dbg(f'timescale_dry_run rows={len(self._pending)} tables={sorted(batches)}')
        except Exception as e:
            dbg(f'timescale_flush_fail err={e.__class__.__name__}:{e}')
            if self._conn is not None:
                self._conn.rollback()
            raise
        finally:
            self._pending.clear()
        self.total_rows_flushed += sum(len(rows) for rows in batches.values())
        self.total_flushes += 1
        self._timings.record(time.time() - flush_start)

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def stats(self) -> Dict[str, Any]:
        t = self._timings
        avg_flush = (t.total / self.total_flushes) if self.total_flushes else 0.0
        return {
            'total_points_added': self.total_points_added,
            'total_points_ignored': self.total_points_ignored,
            'total_rows_added': self.total_rows_added,
            'total_rows_flushed': self.total_rows_flushed,
            'total_flushes': self.total_flushes,
            'pending_rows': len(self._pending),
            'connected': bool(self._conn),
            'use_copy': self.use_copy,
            'insert_method': 'COPY' if self.use_copy else 'INSERT',
            'batch_size': self.batch_size,
            'insert_page_size': self.insert_page_size,
            'avg_flush_seconds': round(avg_flush, 6),
            'last_flush_seconds': round(t.last, 6),
            'max_flush_seconds': round(t.peak, 6),
        }

__all__ = ["TimescaleWriter"]
