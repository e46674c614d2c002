"""
Platform-specific browser discovery and client construction strategies.
"""

import os
from typing import Callable, Dict, List, Optional

from chatlink.client.base import ClientOptions
from chatlink.logger import get_logger

logger = get_logger(__name__)

BROWSER_CANDIDATES: Dict[str, List[str]] = {
    "Linux": [
        "/usr/bin/google-chrome-stable",
        "/usr/bin/google-chrome",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
        "/snap/bin/chromium",
    ],
    "Windows": [
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    ],
    "Darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
}

SANDBOX_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
SERVER_ARGS = SANDBOX_ARGS + ["--disable-dev-shm-usage", "--disable-gpu"]


def resolve_browser_binary(
    system: str,
    exists: Callable[[str], bool] = os.path.exists,
    override: Optional[str] = None,
) -> Optional[str]:
    """
    Find a browser executable for the automation backend.

    Args:
        system: ``platform.system()`` value.
        exists: Filesystem existence check.
        override: Explicitly configured path, checked first.

    Returns:
        The first existing path, or None.
    """
    if override:
        if exists(override):
            return override
        logger.warning(f"Configured browser path does not exist: {override}")

    for path in BROWSER_CANDIDATES.get(system, []):
        logger.debug(f"Checking browser at {path}")
        if exists(path):
            logger.info(f"Found browser at {path}")
            return path

    logger.info(f"No system browser found for {system}")
    return None


def candidate_options(
    config,
    system: str,
    exists: Callable[[str], bool] = os.path.exists,
) -> List[ClientOptions]:
    """
    Ordered construction strategies for the client.

    Linux servers try the system browser, then the driver's bundled browser
    with minimal flags, then no browser settings at all. Desktop platforms
    get a single strategy.
    """
    base = dict(
        session_key=config.session_key,
        auth_dir=config.auth_dir,
        headless=config.headless,
    )
    browser = resolve_browser_binary(system, exists, override=config.browser_path)

    if system != "Linux":
        return [
            ClientOptions(
                **base,
                executable_path=browser,
                browser_args=list(SANDBOX_ARGS),
                takeover_timeout_ms=15000,
                restart_on_auth_fail=True,
                label="desktop",
            )
        ]

    strategies = []
    if browser:
        strategies.append(
            ClientOptions(
                **base,
                executable_path=browser,
                browser_args=list(SERVER_ARGS),
                label="system-browser",
            )
        )
    strategies.append(
        ClientOptions(**base, browser_args=list(SANDBOX_ARGS), label="bundled-browser")
    )
    strategies.append(ClientOptions(**base, label="driver-defaults"))
    return strategies
