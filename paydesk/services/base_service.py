"""
Base service class.

Provides common functionality for all service classes including backend
client access, logging, and helper decorators.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

from paydesk.clients.payment_api import PaymentApiClient
from paydesk.services.notification import Notifier


# Type variable for generic decorator return types
T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Provides common functionality for all service classes:
    - Backend client
    - Operator notifier
    - Logging with bound service context
    """

    def __init__(
        self, api: PaymentApiClient, notifier: Notifier | None = None
    ) -> None:
        """
        Initialize base service.

        Args:
            api: Payment backend client
            notifier: Operator notifier (log-backed by default)
        """
        self.api = api
        self.notifier = notifier or Notifier()
        self.logger = logger.bind(service=self.__class__.__name__)


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to log method entry/exit with timing.

    Logs:
    - Method entry
    - Method exit with duration
    - Exceptions if any

    Usage:
        @log_operation
        async def my_service_method(self, items):
            ...

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.monotonic()
        self.logger.debug(f"Starting {func.__name__}")

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.warning(
                f"Failed {func.__name__} after "
                f"{time.monotonic() - start_time:.3f}s: {e}"
            )
            raise

        self.logger.debug(
            f"Completed {func.__name__} in {time.monotonic() - start_time:.3f}s"
        )
        return result

    return wrapper
