from __future__ import annotations

import fcntl
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

"""Single-instance guard using an exclusive flock on a lock file."""

__all__ = [
    "LockError",
    "single_instance_lock",
]


class LockError(Exception):
    """Another importer process holds the lock."""


@contextmanager
def single_instance_lock(path: Path) -> Iterator[IO[str]]:
    """Hold an exclusive, non-blocking lock on ``path`` for the block.

    Raises:
        LockError: if the lock is already held or the file cannot be opened
    """
    try:
        handle = path.open("a+", encoding="utf-8")
    except OSError as e:
        raise LockError(f"cannot open lock file {path}: {e}") from e
    try:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise LockError(f"another instance is running (lock held: {path})") from e
        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        try:
            yield handle
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()
