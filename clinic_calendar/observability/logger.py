"""Calendar logger with per-component level filtering."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from pydantic import BaseModel, Field, field_validator

from clinic_calendar.config import Settings
from clinic_calendar.observability.events import CalendarEvent, EventType

logger = logging.getLogger(__name__)

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LogFilterConfig(BaseModel):
    """Which components log, and from what level."""

    default_level: str = "INFO"
    component_levels: dict[str, str] = Field(default_factory=dict)
    disabled_components: set[str] = Field(default_factory=set)

    @field_validator("default_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in _LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return value

    @field_validator("component_levels")
    @classmethod
    def _check_component_levels(cls, value: dict[str, str]) -> dict[str, str]:
        upper = {k: v.upper() for k, v in value.items()}
        bad = sorted(v for v in upper.values() if v not in _LEVELS)
        if bad:
            raise ValueError(f"Unknown log levels: {bad}")
        return upper

    @classmethod
    def from_settings(cls, settings: Settings) -> "LogFilterConfig":
        return cls(
            default_level=settings.log_level,
            component_levels=settings.component_log_levels,
        )

    def threshold(self, component: str) -> int:
        """Numeric logging level for *component*."""
        name = self.component_levels.get(component, self.default_level)
        return logging.getLevelName(name)


class CalendarLogger:
    """Component-aware logger for the calendar service.

    Messages pass through a ``LogFilterConfig`` before reaching the stdlib
    logger ``clinic_calendar.<component>``. Structured events are appended
    to JSON Lines files when a log directory is given, and handed to any
    registered callbacks.
    """

    def __init__(
        self,
        config: Optional[LogFilterConfig] = None,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
    ):
        """Initialize the calendar logger.

        Args:
            config: Level filter (default: INFO for every component)
            log_dir: Directory for event files; no files are written if None
            enabled: Master switch for messages and events
        """
        self.config = config or LogFilterConfig()
        self.enabled = enabled
        self.log_dir = log_dir
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._callbacks: list[Callable[[CalendarEvent], None]] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "CalendarLogger":
        return cls(config=LogFilterConfig.from_settings(settings), log_dir=settings.log_dir)

    def generate_request_id(self) -> str:
        """Generate a short request ID for event correlation."""
        return str(uuid.uuid4())[:8]

    def add_callback(self, callback: Callable[[CalendarEvent], None]) -> None:
        """Add callback for real-time event monitoring."""
        self._callbacks.append(callback)

    def is_enabled_for(self, component: str, level: int) -> bool:
        if not self.enabled or component in self.config.disabled_components:
            return False
        return level >= self.config.threshold(component)

    def log(self, component: str, level: int, message: str, *args: Any) -> None:
        """Log *message* for *component* if the filter lets it through."""
        if self.is_enabled_for(component, level):
            logging.getLogger(f"clinic_calendar.{component}").log(level, message, *args)

    def debug(self, component: str, message: str, *args: Any) -> None:
        self.log(component, logging.DEBUG, message, *args)

    def info(self, component: str, message: str, *args: Any) -> None:
        self.log(component, logging.INFO, message, *args)

    def warning(self, component: str, message: str, *args: Any) -> None:
        self.log(component, logging.WARNING, message, *args)

    def error(self, component: str, message: str, *args: Any) -> None:
        self.log(component, logging.ERROR, message, *args)

    def _event_file(self, component: str) -> Optional[Path]:
        if self.log_dir is None:
            return None
        return self.log_dir / f"{component}.jsonl"

    def record(self, event: CalendarEvent) -> None:
        """Write *event* to its component file and notify callbacks."""
        if not self.enabled or event.component in self.config.disabled_components:
            return

        try:
            log_file = self._event_file(event.component)
            if log_file:
                with open(log_file, "a") as f:
                    f.write(event.model_dump_json() + "\n")
        except OSError as e:
            logger.warning(f"Failed to write calendar event: {e}")

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Calendar event callback failed: {e}")

    @contextmanager
    def operation(self, event: CalendarEvent, error_type: EventType) -> Iterator[CalendarEvent]:
        """Time an operation and record *event* when it finishes.

        Usage:
            with cal_log.operation(ConflictCheckEvent(...), EventType.CONFLICT_CHECK_ERROR) as event:
                conflicts = detect_conflicts(...)
                event.conflicts = len(conflicts)
        """
        start_time = time.time()
        if event.request_id is None:
            event.request_id = self.generate_request_id()

        try:
            yield event
        except Exception as e:
            event.event_type = error_type
            event.error_type = type(e).__name__
            event.error_message = str(e)[:200]
            self.error(event.component, "%s failed: %s", event.event_type.value, e)
            raise
        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self.record(event)

    def get_recent_events(self, component: str, limit: int = 100) -> list[dict[str, Any]]:
        """Read recent events recorded for *component*."""
        log_file = self._event_file(component)
        if not log_file or not log_file.exists():
            return []

        events = []
        with open(log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]
