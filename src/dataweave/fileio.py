"""File helpers for generated artifacts."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def read_text(path: Path) -> Optional[str]:
    """Return the content of ``path``, or None if it does not exist."""
    try:
        return Path(path).read_text(encoding='utf-8')
    except FileNotFoundError:
        return None


def write_text(path: Path, content: str) -> None:
    """Replace ``path`` with ``content``.

    The content goes to a temporary file in the same directory first and is
    then renamed over the target, so readers see either the old or the new file.
    Parent directories are created as needed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f'Wrote {len(content)} chars to {path}')
