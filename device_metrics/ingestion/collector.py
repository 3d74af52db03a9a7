"""Read files captured on the device through the harness readFile scripts.

Two script families exist:
  Windows: <scripts_dir>/Scripts/Bat/readFile.bat <device> <file>
  others : <scripts_dir>/Scripts/Shell/readFile.sh <device> <file>

Both print the file content to stdout. Any collector passed to the
orchestrator only needs ``read_file(device, file_name, cancel_event=None) -> str``;
cancel_event is a threading.Event or anything else exposing ``is_set()``.
"""
from __future__ import annotations
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import List, Optional

from ..debug_util import dbg

DEFAULT_FETCH_TIMEOUT_S = 120.0
POLL_INTERVAL_S = 0.25


class CollectionError(RuntimeError):
    pass


class CollectionCancelled(CollectionError):
    pass


def is_windows() -> bool:
    return sys.platform.startswith('win')


class ScriptFileCollector:
    def __init__(self, scripts_dir: Optional[str] = None, timeout_s: Optional[float] = None, windows: Optional[bool] = None):
        self.scripts_dir = Path(scripts_dir or os.environ.get('DEVICE_METRICS_SCRIPTS_DIR') or os.getcwd())
        if timeout_s is None:
            try:
                timeout_s = float(os.environ.get('DEVICE_METRICS_FETCH_TIMEOUT', DEFAULT_FETCH_TIMEOUT_S))
            except ValueError:
                timeout_s = DEFAULT_FETCH_TIMEOUT_S
        self.timeout_s = timeout_s
        self.windows = is_windows() if windows is None else windows

    def command(self, device: str, file_name: str) -> List[str]:
        if self.windows:
            script = self.scripts_dir / 'Scripts' / 'Bat' / 'readFile.bat'
            return ['cmd', '/c', str(script), device, file_name]
        script = self.scripts_dir / 'Scripts' / 'Shell' / 'readFile.sh'
        return ['sh', str(script), device, file_name]

    def read_file(self, device: str, file_name: str, cancel_event=None) -> str:
        cmd = self.command(device, file_name)
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise CollectionError(f'failed to start {cmd[0]} for {file_name}: {e}') from e
        deadline = time.monotonic() + self.timeout_s
        while True:
            try:
                out, err = proc.communicate(timeout=POLL_INTERVAL_S)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    proc.kill()
                    proc.communicate()
                    raise CollectionCancelled(f'fetch of {file_name} from {device} cancelled')
                if time.monotonic() >= deadline:
                    proc.kill()
                    proc.communicate()
                    raise CollectionError(f'fetch of {file_name} from {device} timed out after {self.timeout_s}s')
        if proc.returncode != 0:
            msg = err.decode('utf-8', errors='replace').strip()
            raise CollectionError(f'readFile exited with {proc.returncode} for {file_name}: {msg}')
        text = out.decode('utf-8', errors='replace')
        lines = [ln for ln in text.splitlines() if ln]
        dbg(f'read_file device={device} file={file_name} lines={len(lines)}')
        return '\n'.join(lines)


__all__ = ['ScriptFileCollector', 'CollectionError', 'CollectionCancelled', 'is_windows']
