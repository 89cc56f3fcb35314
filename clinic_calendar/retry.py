"""Bounded retry with exponential backoff and jitter."""

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, Field
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from clinic_calendar.config import Settings
from clinic_calendar.errors import RepositoryUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """How often and how patiently a transient failure is retried."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0, description="Seconds before the first retry")
    max_delay: float = Field(default=10.0, ge=0)
    jitter: float = Field(default=0.5, ge=0, description="Upper bound of random extra delay")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def retrying(
        self,
        retry_on: tuple[type[BaseException], ...] = (RepositoryUnavailableError,),
        sleep: Optional[Callable[[float], None]] = None,
    ) -> Retrying:
        """Build a tenacity controller for this policy.

        The last exception is re-raised once attempts run out.
        """
        return Retrying(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay)
            + wait_random(0, self.jitter),
            sleep=sleep or time.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def call(
        self,
        fn: Callable[..., T],
        *args: Any,
        sleep: Optional[Callable[[float], None]] = None,
        **kwargs: Any,
    ) -> T:
        """Invoke *fn* under this policy."""
        return self.retrying(sleep=sleep)(fn, *args, **kwargs)
