"""
Error handling utilities for the cosmogony builder.

This module provides the central error handler that turns recoverable
per-zone failures into data-quality warnings, plus retry helpers for file
operations.
"""

import time
import logging
import threading
from typing import Callable, Any, Optional, List, Dict, Type, Union
from pathlib import Path

from ..exceptions import (
    FileAccessError, DataLoadError, GeometryError, InvalidGeometryError,
    UnclosedRingError, AmbiguousContainmentError, ContainmentError,
    is_recoverable_error, get_error_severity
)
from ..models import DataQualityWarning


class RetryConfig:
    """Configuration for retry mechanisms."""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0,
                 max_delay: float = 60.0, backoff_factor: float = 2.0,
                 retry_exceptions: Optional[List[Type[Exception]]] = None):
        """
        Initialize retry configuration.

        Args:
            max_attempts: Maximum number of retry attempts
            base_delay: Base delay between retries in seconds
            max_delay: Maximum delay between retries in seconds
            backoff_factor: Factor to multiply delay by for exponential backoff
            retry_exceptions: List of exception types to retry on
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.retry_exceptions = retry_exceptions or [
            FileAccessError, DataLoadError, ConnectionError, TimeoutError
        ]

    def delay_for(self, attempt: int) -> float:
        """Get the backoff delay before the given retry attempt."""
        return min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)


# Warning kind recorded for each recoverable error type, most specific first
_ERROR_KINDS = (
    (UnclosedRingError, 'unclosed_ring'),
    (InvalidGeometryError, 'invalid_geometry'),
    (GeometryError, 'invalid_geometry'),
    (AmbiguousContainmentError, 'ambiguous_containment'),
    (ContainmentError, 'containment_failure'),
)

_PHASE_DEFAULT_KINDS = {
    'assembly': 'invalid_geometry',
    'containment': 'containment_failure',
}


class ErrorHandler:
    """
    Centralized error handling and warning collection.

    Safe to share between worker threads: counters and the warning list are
    guarded by a single lock.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the error handler.

        Args:
            logger: Optional logger instance for error logging
        """
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}
        self._warnings: List[DataQualityWarning] = []
        self._lock = threading.Lock()

    def handle_zone_error(self, error: Exception, zone_id: Optional[int],
                          phase: str) -> DataQualityWarning:
        """
        Handle a per-zone error: log it, count it and record a warning.

        Args:
            error: Exception raised while processing the zone
            zone_id: Id of the affected zone
            phase: Name of the pass in which the error occurred

        Returns:
            The recorded DataQualityWarning

        Raises:
            The original error if it is not recoverable
        """
        context = create_error_context(operation=phase, zone_id=zone_id)
        self._log_error(error, context)

        error_type = type(error).__name__
        with self._lock:
            self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        if not is_recoverable_error(error):
            self.logger.error(f"Non-recoverable error during {phase}: {error}")
            raise error

        kind = self._warning_kind(error, phase)
        error_context = error.to_dict()['context'] if hasattr(error, 'to_dict') else {}
        related_ids = [cid for cid in error_context.get('candidate_ids', []) if cid != zone_id]

        return self.record_warning(
            kind,
            zone_id,
            f"Zone {zone_id} dropped during {phase}: {error}",
            related_ids=related_ids,
            severity=get_error_severity(error),
            context=error_context
        )

    def record_warning(self, kind: str, zone_id: Optional[int], message: str,
                       related_ids: Optional[List[int]] = None, severity: str = 'medium',
                       context: Optional[Dict[str, Any]] = None) -> DataQualityWarning:
        """
        Record a data-quality warning for operator review.

        Args:
            kind: Warning kind (see DataQualityWarning.VALID_KINDS)
            zone_id: Id of the zone the warning is about
            message: Human-readable description
            related_ids: Other zones involved (overlapping sibling, new parent...)
            severity: Severity level
            context: Optional structured details

        Returns:
            The recorded DataQualityWarning
        """
        warning = DataQualityWarning(
            kind=kind,
            zone_id=zone_id,
            message=message,
            related_ids=list(related_ids or []),
            severity=severity,
            context=context or {}
        )

        with self._lock:
            self._warnings.append(warning)

        if severity in ('high', 'critical'):
            self.logger.warning(f"DATA QUALITY: {message}")
        else:
            self.logger.debug(f"DATA QUALITY: {message}")

        return warning

    def get_warnings(self) -> List[DataQualityWarning]:
        """
        Get all recorded warnings in a deterministic order.

        Returns:
            Warnings sorted by zone id, kind and related ids
        """
        with self._lock:
            warnings = list(self._warnings)

        return sorted(
            warnings,
            key=lambda w: (w.zone_id is None, w.zone_id or 0, w.kind, w.related_ids, w.message)
        )

    def _warning_kind(self, error: Exception, phase: str) -> str:
        """Map an error to the warning kind recorded for it."""
        if isinstance(error, InvalidGeometryError) and error.reason == 'empty':
            return 'empty_geometry'

        for error_type, kind in _ERROR_KINDS:
            if isinstance(error, error_type):
                return kind

        return _PHASE_DEFAULT_KINDS.get(phase, 'containment_failure')

    def _log_error(self, error: Exception, context: Dict[str, Any]):
        """Log error with appropriate level and context."""
        severity = get_error_severity(error)
        error_info = {
            'error_type': type(error).__name__,
            'message': str(error),
            'severity': severity,
            'context': context
        }

        if hasattr(error, 'to_dict'):
            error_info.update(error.to_dict())

        if severity == 'critical':
            self.logger.critical(f"Critical error: {error_info}")
        elif severity == 'high':
            self.logger.error(f"High severity error: {error_info}")
        elif severity == 'medium':
            self.logger.warning(f"Medium severity error: {error_info}")
        else:
            self.logger.info(f"Low severity error: {error_info}")

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors and warnings encountered."""
        with self._lock:
            error_counts = self.error_counts.copy()
            warning_counts: Dict[str, int] = {}
            for warning in self._warnings:
                warning_counts[warning.kind] = warning_counts.get(warning.kind, 0) + 1

        return {
            'total_errors': sum(error_counts.values()),
            'error_counts': error_counts,
            'most_common_error': max(error_counts.items(), key=lambda x: x[1])[0]
                                 if error_counts else None,
            'total_warnings': sum(warning_counts.values()),
            'warning_counts': warning_counts
        }

    def reset(self):
        """Reset error counters and recorded warnings."""
        with self._lock:
            self.error_counts.clear()
            self._warnings.clear()
        self.logger.info("Error counters reset")


def safe_file_operation(operation: Callable, file_path: Union[str, Path],
                        operation_name: str, retry_config: Optional[RetryConfig] = None,
                        logger: Optional[logging.Logger] = None) -> Any:
    """
    Safely perform file operations with retry and error handling.

    Args:
        operation: Function to perform the file operation
        file_path: Path to the file
        operation_name: Name of the operation for logging
        retry_config: Configuration for retry behavior
        logger: Optional logger instance

    Returns:
        Result of the file operation

    Raises:
        FileAccessError: If the operation fails after all retries
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    if retry_config is None:
        retry_config = RetryConfig()

    file_path = Path(file_path)

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            logger.debug(f"Attempting {operation_name} on {file_path} (attempt {attempt})")
            return operation()

        except (FileNotFoundError, IsADirectoryError) as e:
            raise FileAccessError(
                f"Cannot {operation_name} '{file_path}': {e}",
                file_path=str(file_path),
                operation=operation_name,
                original_error=e
            )

        except OSError as e:
            if attempt == retry_config.max_attempts:
                logger.error(f"{operation_name} failed after {retry_config.max_attempts} attempts: {e}")
                raise FileAccessError(
                    f"Failed to {operation_name} file after {retry_config.max_attempts} attempts",
                    file_path=str(file_path),
                    operation=operation_name,
                    original_error=e
                )

            delay = retry_config.delay_for(attempt)
            logger.warning(f"{operation_name} failed (attempt {attempt}): {e}. Retrying in {delay:.2f} seconds")
            time.sleep(delay)

    raise FileAccessError(
        f"Unexpected error during {operation_name}",
        file_path=str(file_path),
        operation=operation_name
    )


def create_error_context(operation: str, **kwargs) -> Dict[str, Any]:
    """
    Create standardized error context dictionary.

    Args:
        operation: Name of the operation being performed
        **kwargs: Additional context information

    Returns:
        Dictionary with error context information
    """
    context = {
        'operation': operation,
        'timestamp': time.time(),
    }
    context.update(kwargs)
    return context


def log_error_details(logger: logging.Logger, error: Exception,
                      context: Optional[Dict[str, Any]] = None):
    """
    Log detailed error information.

    Args:
        logger: Logger instance to use
        error: Exception to log
        context: Optional context information
    """
    error_details = {
        'error_type': type(error).__name__,
        'error_message': str(error),
        'severity': get_error_severity(error)
    }

    if hasattr(error, 'to_dict'):
        error_details.update(error.to_dict())

    if context:
        error_details['context'] = context

    severity = error_details.get('severity', 'medium')
    if severity == 'critical':
        logger.critical(f"Critical error occurred: {error_details}")
    elif severity == 'high':
        logger.error(f"High severity error: {error_details}")
    else:
        logger.warning(f"Error: {error_details}")
