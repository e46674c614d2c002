"""
Client construction from configuration.

Mirrors the channel driver loading pattern: the driver class is named by an
import path in configuration and instantiated with generic options.
"""

import importlib
import os
import platform
from typing import Callable, Optional, Type

from chatlink.client.base import MessagingClient
from chatlink.client.browser import candidate_options
from chatlink.client.degraded import DegradedClient
from chatlink.errors import DriverLoadError
from chatlink.logger import get_logger

logger = get_logger(__name__)


def load_driver(path: str) -> Type[MessagingClient]:
    """
    Import a client class from ``"package.module:ClassName"`` or
    ``"package.module.ClassName"``.

    Raises:
        DriverLoadError: If the module or class cannot be found, or the class
            is not a MessagingClient.
    """
    if ":" in path:
        module_path, class_name = path.split(":", 1)
    else:
        module_path, _, class_name = path.rpartition(".")

    if not module_path or not class_name:
        raise DriverLoadError(f"Invalid driver path: {path!r}")

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise DriverLoadError(f"Module {module_path} not found: {e}") from e

    driver = getattr(module, class_name, None)
    if driver is None:
        raise DriverLoadError(f"{module_path} has no attribute {class_name}")
    if not (isinstance(driver, type) and issubclass(driver, MessagingClient)):
        raise DriverLoadError(f"{path} is not a MessagingClient subclass")
    return driver


def create_client(
    config,
    driver: Optional[Type[MessagingClient]] = None,
    system: Optional[str] = None,
    exists: Callable[[str], bool] = os.path.exists,
) -> MessagingClient:
    """
    Build a client, falling back through construction strategies.

    When no driver is configured, the driver cannot be loaded, or every
    strategy fails in the constructor, a DegradedClient is returned.
    """
    system = system or platform.system()
    strategies = candidate_options(config, system, exists)

    if driver is None and config.client_driver:
        try:
            driver = load_driver(config.client_driver)
        except DriverLoadError as e:
            logger.error(f"Could not load client driver: {e}")

    if driver is None:
        logger.warning("No client driver available, using degraded client")
        return DegradedClient(strategies[-1])

    for options in strategies:
        try:
            client = driver(options)
            logger.info(
                f"Client created with {driver.__name__} ({options.label} strategy)"
            )
            return client
        except Exception as e:
            logger.warning(f"Client strategy '{options.label}' failed: {e}")

    logger.error("All client strategies failed, using degraded client")
    return DegradedClient(strategies[-1])
