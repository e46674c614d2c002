"""
On-disk session artifacts.

The messaging client persists its authenticated state in one directory per
session key. chatlink never reads those files; it only deletes them so the
next client starts from a fresh login.
"""

import asyncio
import errno
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Union

from chatlink.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRNOS = {errno.EBUSY, errno.EACCES, errno.ENOTEMPTY, errno.EPERM}


def default_auth_dir(system: str) -> str:
    """Platform default for the directory holding session folders."""
    if system == "Windows":
        return "C:\\wwebjs_session"
    return ".wwebjs_auth"


def session_dir(auth_dir: Union[str, Path], session_key: str) -> Path:
    """Directory holding the artifacts of one session key."""
    return Path(auth_dir) / f"session-{session_key}"


def _is_transient(exc: OSError) -> bool:
    return isinstance(exc, PermissionError) or exc.errno in TRANSIENT_ERRNOS


async def remove_session_artifacts(
    path: Union[str, Path],
    retries: int = 3,
    retry_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """
    Recursively delete a session directory.

    A missing directory counts as success. Lock-style errors (file in use,
    permission denied while a process still holds a handle) are retried up
    to ``retries`` times with a fixed delay. Never raises.

    Returns:
        True if the directory is gone, False otherwise.
    """
    path = Path(path)
    for attempt in range(1, retries + 1):
        try:
            await asyncio.to_thread(shutil.rmtree, path)
            logger.info(f"Session artifacts removed: {path}")
            return True
        except FileNotFoundError:
            logger.debug(f"No session artifacts at {path}")
            return True
        except OSError as e:
            if _is_transient(e) and attempt < retries:
                logger.warning(
                    f"Session artifacts locked ({e}), retry {attempt}/{retries - 1} "
                    f"in {retry_delay}s"
                )
                await sleep(retry_delay)
                continue
            logger.error(f"Failed to remove session artifacts at {path}: {e}")
            return False
    return False
