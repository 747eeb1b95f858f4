"""
QuantumFlow — shared logger, per-job/per-request prefixes, step timing.
"""

import logging
import time
from contextlib import contextmanager
from typing import Generator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("quantumflow")


class PrefixedLogger(logging.LoggerAdapter):
    """Prepends ``[<tag>]`` to every message (request id, job id)."""

    def process(self, msg, kwargs):
        return f"[{self.extra['tag']}] {msg}", kwargs


def tagged(tag: str) -> PrefixedLogger:
    return PrefixedLogger(logger, {"tag": tag})


@contextmanager
def step_timer(
    step_name: str, log: logging.Logger | logging.LoggerAdapter = logger
) -> Generator[None, None, None]:
    """Log the start and duration of a pipeline step."""
    log.info("▶ %s — started", step_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.info("✔ %s — finished in %.0f ms", step_name, elapsed_ms)
