"""
Custom logger carrying structured context on every record.
Levels: warning, info, request, error, slow, great
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any

from simplr.logging.log_levels import LogLevel
from simplr.logging.formatters import get_formatter_for_level


LOG_LEVEL_MAP = {
    LogLevel.WARNING: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.REQUEST: logging.INFO,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.SLOW: logging.WARNING,
    LogLevel.GREAT: logging.INFO,
}


class CustomLogger:
    """
    Logger wrapper with domain-specific levels.

    Records go through the standard logging tree, so handlers installed by
    simplr.core.logging.setup_logging receive them.

    Usage:
        logger = CustomLogger("simplr.services.task_sync")
        logger.info("Sync started", user_id="u-1")
        logger.slow("Sync took too long", duration=5.2, threshold=2.0)
        logger.great("Sync complete", created=3, updated=1)
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def _format_context(self, context: Dict[str, Any]) -> str:
        if not context:
            return ""
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f" | {pairs}"

    def _log(
        self,
        level: LogLevel,
        message: str,
        exc_info: bool = False,
        **context: Any
    ) -> None:
        log_data = {
            "level": level.value,
            "module": self.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **context
        }

        record = logging.LogRecord(
            name=self.name,
            level=LOG_LEVEL_MAP[level],
            pathname="",
            lineno=0,
            msg=message + self._format_context(context),
            args=(),
            exc_info=None
        )
        formatted_message = get_formatter_for_level(level).format(record)

        self.logger.log(
            LOG_LEVEL_MAP[level],
            formatted_message,
            extra={"custom_data": log_data},
            exc_info=exc_info
        )

    def warning(self, message: str, **context: Any) -> None:
        """Situations worth attention that are not errors"""
        self._log(LogLevel.WARNING, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def request(
        self,
        message: str,
        method: str,
        path: str,
        status_code: int,
        duration: float,
        **context: Any
    ) -> None:
        """
        HTTP request log

        Example:
            logger.request(
                "API request",
                method="POST",
                path="/api/tasks/sync",
                status_code=200,
                duration=0.152
            )
        """
        self._log(
            LogLevel.REQUEST,
            message,
            method=method,
            path=path,
            status_code=status_code,
            duration=duration,
            **context
        )

    def error(
        self,
        message: str,
        exc_info: bool = True,
        **context: Any
    ) -> None:
        """
        Failures that need attention

        Example:
            try:
                ...
            except RemoteStoreError:
                logger.error("Sync aborted", user_id=user_id)
        """
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **context)

    def slow(
        self,
        message: str,
        duration: float,
        threshold: float = 1.0,
        **context: Any
    ) -> None:
        """Operation exceeded its time budget"""
        self._log(
            LogLevel.SLOW,
            message,
            duration=duration,
            threshold=threshold,
            **context
        )

    def great(self, message: str, **context: Any) -> None:
        """Notable successful outcome"""
        self._log(LogLevel.GREAT, message, **context)


_loggers: Dict[str, CustomLogger] = {}


def get_logger(name: str) -> CustomLogger:
    """
    Get a cached custom logger

    Usage:
        from simplr.logging import get_logger
        logger = get_logger(__name__)
    """
    if name not in _loggers:
        _loggers[name] = CustomLogger(name)
    return _loggers[name]
