"""Timing of remote-facing git operations."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional

SLOW_OPERATION_SECONDS = 15.0


@dataclass
class OperationTiming:
    """Duration of one timed operation."""
    operation: str
    duration: float
    success: bool
    context: Optional[Dict[str, Any]] = None


class PerformanceLogger:
    """
    Times git operations and logs how long they took.

    Only the last timing of each operation name is kept.
    """

    def __init__(self, logger_name: str = 'stagesafe.git_sync.performance'):
        self.logger = logging.getLogger(logger_name)
        self._timings: Dict[str, OperationTiming] = {}

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            context: Extra values logged with the timing (never credentials)
            log_level: Logging level for completion messages
        """
        start_time = time.monotonic()
        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.debug(f"{operation} failed after {time.monotonic() - start_time:.3f}s: {type(e).__name__}")
            raise
        finally:
            duration = time.monotonic() - start_time
            self._timings[operation] = OperationTiming(operation, duration, success, context)

            if success:
                self.logger.log(log_level, f"{operation} completed in {duration:.3f}s")
                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"{operation} context: {context_str}")

            if duration > SLOW_OPERATION_SECONDS:
                self.logger.warning(f"Slow git operation: '{operation}' took {duration:.3f}s")

    def last_timing(self, operation: str) -> Optional[OperationTiming]:
        return self._timings.get(operation)

    def timings(self) -> List[OperationTiming]:
        return list(self._timings.values())


_performance_logger: Optional[PerformanceLogger] = None


def get_performance_logger() -> PerformanceLogger:
    """Get or create the global performance logger instance."""
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger()
    return _performance_logger
