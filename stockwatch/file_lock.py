"""File-locking utilities for the JSON state file.

Provides read_json() for shared-lock reads and the locked_json() context
manager for exclusive read-modify-write cycles. Uses fcntl.flock for
process-safe locking and atomic writes (tmp + fsync + os.replace), so a crash
mid-write leaves the previous file intact.

Unlike a cache file, a state file that fails to parse is an error here:
treating it as empty would re-announce every event it held.
"""

import fcntl
import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path

log = logging.getLogger(__name__)


def _load(f, default_factory):
    text = f.read()
    if not text.strip():
        return default_factory()
    # JSONDecodeError propagates: caller decides how to report corruption
    return json.loads(text)


def read_json(path: Path, default_factory=list):
    """Read a JSON file. Missing or empty file -> default.

    No lock needed: writers only ever os.replace a complete file into place.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return _load(f, default_factory)
    except FileNotFoundError:
        return default_factory()


def write_json_atomic(path: Path, data) -> None:
    """Write data to path via a temp file and os.replace.

    The temp file is removed if anything fails before the replace.
    """
    tmp = str(path) + ".tmp"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


@contextmanager
def locked_json(path: Path, default_factory=list):
    """Hold an exclusive lock across a read-modify-write cycle.

    Reads JSON from path, yields the data for in-place modification, then
    writes back atomically on context exit. Nothing is written if the block
    raises.

    Usage:
        with locked_json(STATE_PATH) as records:
            records.append(entry)
        # lock released, file saved automatically on exit
    """
    lock_path = str(path) + ".lock"
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = _load(f, default_factory)
        except FileNotFoundError:
            data = default_factory()

        yield data

        write_json_atomic(path, data)
        log.debug(f"Wrote {path.name}")
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
