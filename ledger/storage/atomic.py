"""
Atomic file primitives for the CSV store.

Whole-file rewrites go through a uniquely named temp file in the target
directory followed by os.replace. Row appends are one write() on a file
opened in append mode.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp-"


def atomic_write(path: Path, content: bytes, fsync: bool = True) -> None:
    """
    Replace ``path`` with ``content`` so readers see the old or new file, never a mix.

    Args:
        path: Target file
        content: Full new file content
        fsync: Flush the temp file to disk before the rename

    Raises:
        OSError: If the temp file cannot be written or renamed
    """
    path = Path(path)
    fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            if fsync:
                handle.flush()
                os.fsync(handle.fileno())
        if path.exists():
            os.chmod(temp_name, stat.S_IMODE(path.stat().st_mode))
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


def append_line(path: Path, line: str, fsync: bool = False) -> None:
    """
    Append one line with a single write.

    A leading newline is added when the file does not already end with one,
    so a hand-edited file missing its final newline never merges two rows.
    """
    path = Path(path)
    payload = (line + "\n").encode("utf-8")

    with open(path, "ab+") as handle:
        size = handle.seek(0, os.SEEK_END)
        if size > 0:
            handle.seek(size - 1)
            if handle.read(1) != b"\n":
                payload = b"\n" + payload
        handle.write(payload)
        if fsync:
            handle.flush()
            os.fsync(handle.fileno())


def ensure_csv_file(path: Path, header: str, fsync: bool = True) -> bool:
    """
    Create the file with ``header`` or repair its header line in place.

    Only the first line is replaced; every data row is preserved byte for
    byte. A missing final newline is added in the same rewrite.

    Args:
        path: CSV file
        header: Expected header line (no terminator)

    Returns:
        True if the file was created or rewritten
    """
    path = Path(path)
    expected = header.encode("utf-8")

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(path, expected + b"\n", fsync=fsync)
        logger.info("Created CSV file %s", path)
        return True

    content = path.read_bytes()
    first, sep, rest = content.partition(b"\n")
    current = first

    if current == expected and sep and (not rest or rest.endswith(b"\n")):
        return False

    if rest and not rest.endswith(b"\n"):
        rest += b"\n"

    atomic_write(path, expected + b"\n" + rest, fsync=fsync)
    if current != expected:
        logger.warning("Repaired CSV header in %s (was %r)", path, current[:200])
    else:
        logger.info("Added missing trailing newline to %s", path)
    return True
