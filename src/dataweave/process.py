"""Running the external dbt and Dagster command-line tools."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence

from dataweave.exceptions import ExternalProcessError

logger = logging.getLogger(__name__)


def run_tool(
    executable: str,
    args: Sequence[str],
    cwd: Path,
    env: Optional[Mapping[str, str]] = None,
) -> None:
    """Run ``executable`` with ``args`` and wait for it to exit.

    The child inherits this process's stdin/stdout/stderr, so the tool's own
    output goes straight to the terminal. There is no timeout and no retry.

    Args:
        executable: Tool to run (e.g. 'dbt', 'dagster')
        args: Arguments for the tool
        cwd: Working directory for the tool
        env: Extra environment variables, layered over the current environment

    Raises:
        ExternalProcessError: If the tool cannot be started or exits non-zero
    """
    argv = [executable, *args]
    child_env = {**os.environ, **env} if env else None
    logger.info(f"Running: {' '.join(argv)} (cwd={cwd})")

    try:
        result = subprocess.run(argv, cwd=str(cwd), env=child_env, check=False)
    except OSError as e:
        raise ExternalProcessError(
            executable, args, None, f'Failed to execute {executable} command: {e}'
        ) from e

    if result.returncode != 0:
        raise ExternalProcessError(executable, args, result.returncode)
    logger.debug(f'{executable} exited with code 0')
