"""Device sample parsers

Line samples
------------
Every collection script on the device appends one line per tick:

    <epoch_seconds>_<v1>[_<v2>[_<v3>_<v4>]]

The number of values is fixed per backing file (see SAMPLE_FILES). A line
with a different field count, or any field that fails numeric parsing, is
dropped. Device output is noisy (partial writes, shell warnings, locale
artifacts) and a dropped line must never fail a whole run.

Frame blocks
------------
frames_app.txt holds repeated gfxinfo summaries, each followed by the epoch
line written after the dump. Text is split on the literal section marker
"Total" (start of "Total frames rendered") and each block is validated
against FRAME_BLOCK_SCHEMA: every field must match exactly one line.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from ..debug_util import dbg

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DELIMITER = '_'
SUPPORTED_ARITIES = (1, 2, 4)
FRAME_SECTION_MARKER = 'Total'

# backing file -> number of values after the timestamp
SAMPLE_FILES = {
    'cpu_usage_total.txt': 1,
    'cpu_usage_app.txt': 1,
    'ram_usage_total.txt': 1,
    'ram_usage_app.txt': 2,
    'network_usage_total.txt': 4,
    'network_usage_app.txt': 4,
    'battery_app.txt': 1,
}


@dataclass(frozen=True)
class Sample:
    ts: datetime
    values: Tuple[float, ...]

    @property
    def arity(self) -> int:
        return len(self.values)

    def as_tuple(self) -> Tuple:
        return (self.ts, *self.values)


def epoch_seconds_to_datetime(seconds: int) -> datetime:
    return EPOCH + timedelta(seconds=seconds)


def _parse_line(line: str, arity: int) -> Optional[Sample]:
    parts = line.strip().split(DELIMITER)
    if len(parts) != arity + 1:
        return None
    try:
        ts = epoch_seconds_to_datetime(int(parts[0]))
        values = tuple(float(p) for p in parts[1:])
    except (ValueError, OverflowError):
        return None
    return Sample(ts, values)


def parse_samples(lines: Iterable[str], arity: int) -> List[Sample]:
    """Parse underscore-delimited sample lines, preserving input order.

    Lines that do not carry exactly ``arity`` values or fail numeric parsing
    are skipped silently.
    """
    if arity not in SUPPORTED_ARITIES:
        raise ValueError(f'unsupported sample arity {arity}; expected one of {SUPPORTED_ARITIES}')
    result: List[Sample] = []
    dropped = 0
    for line in lines:
        if not line.strip():
            continue
        sample = _parse_line(line, arity)
        if sample is None:
            dropped += 1
            continue
        result.append(sample)
    if dropped:
        dbg(f'parse_samples arity={arity} parsed={len(result)} dropped={dropped}')
    return result


def parse_file_samples(file_name: str, raw: str) -> List[Sample]:
    return parse_samples(raw.splitlines(), SAMPLE_FILES[file_name])


def parse_scalar(raw: str, suffix: Optional[str] = None) -> Optional[float]:
    """Parse a single-value file such as cpu_total.txt ("800%cpu").

    Returns None for empty or non-numeric content.
    """
    text = raw
    if suffix:
        text = re.sub(re.escape(suffix), '', text, flags=re.IGNORECASE)
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


# ----------------- Frame blocks -----------------

@dataclass(frozen=True)
class FrameField:
    name: str
    pattern: re.Pattern


FRAME_BLOCK_SCHEMA: Tuple[FrameField, ...] = (
    FrameField('timestamp', re.compile(r'^\s*(\d+)\s*$')),
    FrameField('frames_rendered', re.compile(r'^\s*frames rendered:\s*([0-9.]+)\s*$')),
    # "Janky frames (legacy): ..." has no colon right after "frames" and never matches
    FrameField('janky_frames', re.compile(r'^\s*Janky frames:\s*([0-9.]+)\s*(?:\([0-9.]+%\))?\s*$')),
    FrameField('p50', re.compile(r'^\s*50th percentile:\s*([0-9.]+)\s*(?:ms)?\s*$')),
    FrameField('p90', re.compile(r'^\s*90th percentile:\s*([0-9.]+)\s*(?:ms)?\s*$')),
    FrameField('p95', re.compile(r'^\s*95th percentile:\s*([0-9.]+)\s*(?:ms)?\s*$')),
    FrameField('p99', re.compile(r'^\s*99th percentile:\s*([0-9.]+)\s*(?:ms)?\s*$')),
)


def _parse_frame_block(block: str) -> Optional[Sample]:
    lines = block.splitlines()
    captured: List[str] = []
    for field in FRAME_BLOCK_SCHEMA:
        matches = [m.group(1) for m in (field.pattern.match(line) for line in lines) if m]
        if len(matches) != 1:
            return None
        captured.append(matches[0])
    try:
        ts = epoch_seconds_to_datetime(int(captured[0]))
        values = tuple(float(v) for v in captured[1:])
    except (ValueError, OverflowError):
        return None
    return Sample(ts, values)


def parse_frame_blocks(raw: str) -> List[Sample]:
    """Parse gfxinfo frame blocks into samples of six values.

    Value order follows FRAME_BLOCK_SCHEMA after the timestamp:
    frames_rendered, janky_frames, p50, p90, p95, p99.
    """
    result: List[Sample] = []
    dropped = 0
    for block in raw.split(FRAME_SECTION_MARKER):
        if not block.strip():
            continue
        sample = _parse_frame_block(block)
        if sample is None:
            dropped += 1
            continue
        result.append(sample)
    if dropped:
        dbg(f'parse_frame_blocks parsed={len(result)} dropped_blocks={dropped}')
    return result


__all__ = [
    'Sample',
    'FrameField',
    'FRAME_BLOCK_SCHEMA',
    'SAMPLE_FILES',
    'epoch_seconds_to_datetime',
    'parse_samples',
    'parse_file_samples',
    'parse_scalar',
    'parse_frame_blocks',
]
