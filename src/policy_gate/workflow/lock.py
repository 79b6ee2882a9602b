from __future__ import annotations

import fcntl
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Final

from .errors import StateLockTimeout

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 0.05


@contextmanager
def exclusive_lock(
    path: Path,
    *,
    timeout: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> Iterator[None]:
    """Hold an exclusive ``flock`` on ``path`` for the duration of the block."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a+", encoding="utf-8") as handle:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise StateLockTimeout(
                        f"could not lock '{path.as_posix()}' within {timeout:g}s"
                    ) from None
                time.sleep(poll_interval)
        logger.debug("acquired state lock %s", path)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("released state lock %s", path)
