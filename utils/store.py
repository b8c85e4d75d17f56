"""Filesystem primitives for the mirror tree.

Every component that touches disk goes through these helpers so that writes
are atomic (temp file + ``os.replace``) and existence checks mean the same
thing everywhere: a path "exists" only when it is a regular file.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Union


def ensure_dir(dir_path: Path) -> Path:
    """Create *dir_path* (and any parents) if it does not exist yet."""
    dir_path = Path(dir_path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def file_exists(file_path: Path) -> bool:
    """Return True if *file_path* is an existing regular file."""
    return Path(file_path).is_file()


def atomic_write(file_path: Path, content: Union[bytes, str]) -> None:
    """Write *content* to *file_path* so readers never see a partial file.

    The data goes to a temporary file in the same directory which is then
    renamed over the target.  On any error the temporary file is removed and
    the exception propagates; the previous contents of *file_path* (if any)
    are left untouched.

    Args:
        file_path: Destination path.  Its parent directory must exist.
        content:   Bytes, or text (encoded as UTF-8).
    """
    file_path = Path(file_path)
    data = content.encode("utf-8") if isinstance(content, str) else content

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, file_path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def atomic_write_json(file_path: Path, data: Any) -> None:
    """Serialise *data* as indented JSON and write it atomically."""
    atomic_write(file_path, json.dumps(data, indent=2) + "\n")


def read_file(file_path: Path) -> bytes:
    """Return the raw bytes of *file_path*."""
    with open(file_path, "rb") as fh:
        return fh.read()


def read_json(file_path: Path) -> Any:
    with open(file_path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def remove_file(file_path: Path) -> bool:
    """Delete *file_path* if present.  Returns True if a file was removed."""
    file_path = Path(file_path)
    if not file_path.exists():
        return False
    file_path.unlink()
    return True


def remove_tree(dir_path: Path) -> None:
    """Recursively delete a directory."""
    shutil.rmtree(dir_path)
