"""Atomic file replacement."""

import os
from pathlib import Path
from typing import Optional


def atomic_write_text(path: Path, text: str, mode: Optional[int] = None) -> None:
    """Replace path with text so readers never see a partial file.

    Writes a temp file in the same directory, fsyncs it, then renames it over
    the target. The temp file is removed if anything fails.

    Raises:
        OSError: If any filesystem operation fails
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
