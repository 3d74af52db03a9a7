"""Pytest bootstrap ensuring the in-repo device_metrics package is imported.

Also provides a fake collection collaborator serving files from tests/data.
"""

import os, sys, threading

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    # Prepend so it wins over any site-packages installation
    sys.path.insert(0, REPO_ROOT)

DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')


def load_data(name: str) -> str:
    with open(os.path.join(DATA_DIR, name), encoding='utf-8') as f:
        return f.read()


class FakeCollector:
    """In-memory stand-in for ScriptFileCollector.

    ``files`` maps file name -> content (missing names read as ""), ``errors``
    maps file name -> exception raised instead of returning content.
    """

    def __init__(self, files=None, errors=None):
        self.files = dict(files or {})
        self.errors = dict(errors or {})
        self.calls = []
        self._lock = threading.Lock()

    def read_file(self, device, file_name, cancel_event=None):
        with self._lock:
            self.calls.append((device, file_name, threading.current_thread().name))
        if file_name in self.errors:
            raise self.errors[file_name]
        return self.files.get(file_name, '')

    def fetched(self):
        return [c[1] for c in self.calls]


ALL_FILES = [
    'cpu_total.txt', 'cpu_usage_total.txt', 'cpu_usage_app.txt',
    'ram_total.txt', 'ram_usage_total.txt', 'ram_usage_app.txt',
    'network_usage_total.txt', 'network_usage_app.txt',
    'battery_app.txt', 'frames_app.txt',
]


@pytest.fixture
def device_files():
    return {name: load_data(name) for name in ALL_FILES}


@pytest.fixture
def fake_collector(device_files):
    return FakeCollector(device_files)


@pytest.fixture
def dry_writer(monkeypatch):
    from device_metrics.timescale.writer import TimescaleWriter
    for var in ('TIMESCALE_DSN', 'DEVICE_METRICS_BATCH_SIZE', 'DEVICE_METRICS_INSERT_PAGE_SIZE',
                'DEVICE_METRICS_USE_COPY_COMMAND'):
        monkeypatch.delenv(var, raising=False)
    return TimescaleWriter()
