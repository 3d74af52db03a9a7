import os, logging, sys

logger = logging.getLogger("device_metrics")

def _ensure_logger():
    """Attach a basic StreamHandler if none present.

    Done lazily so importing the package never overrides the host
    harness logging configuration. A handler is only added once a debug
    line is actually emitted (DEBUG_VERBOSE=1) and nothing else has
    configured this logger.
    """
    if logger.handlers:
        return
    logger.setLevel(logging.INFO)
    h = logging.StreamHandler(stream=sys.stdout)
    fmt = logging.Formatter('%(asctime)s %(levelname)s [%(threadName)s] %(message)s')
    h.setFormatter(fmt)
    logger.addHandler(h)

def dbg(msg: str):
    """Emit a debug info line when DEBUG_VERBOSE=1.

    Export DEBUG_VERBOSE=1 before running the extraction to see per-file
    fetch sizes, dropped line counts and writer flush details.
    """
    if os.environ.get('DEBUG_VERBOSE') == '1':
        _ensure_logger()
        logger.info('[debug] %s', msg)
