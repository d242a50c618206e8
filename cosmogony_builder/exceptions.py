"""
Custom exception classes for the cosmogony builder.

This module defines the exception hierarchy used while assembling zone
geometries and building the administrative hierarchy. Per-zone errors are
recoverable (the zone is excluded and a warning recorded); invariant
violations are fatal and abort the run.
"""

from typing import Optional, List, Dict, Any


class CosmogonyError(Exception):
    """Base exception class for all cosmogony builder errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        """
        Initialize the base builder error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional context information about the error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context
        }


class GeometryError(CosmogonyError):
    """Exception raised when a zone's geometry cannot be assembled."""

    def __init__(self, message: str, zone_id: Optional[int] = None,
                 error_code: str = 'GEOMETRY_ERROR',
                 context: Optional[Dict[str, Any]] = None):
        """
        Initialize geometry error.

        Args:
            message: Human-readable error message
            zone_id: Id of the source relation whose geometry failed
            error_code: Error code for programmatic handling
            context: Optional extra context (coordinates, ring counts...)
        """
        full_context = {'zone_id': zone_id}
        full_context.update(context or {})
        super().__init__(message, error_code=error_code, context=full_context)
        self.zone_id = zone_id


class UnclosedRingError(GeometryError):
    """Exception raised when boundary fragments cannot be joined into a closed ring."""

    def __init__(self, message: str, zone_id: Optional[int] = None,
                 open_start: Optional[tuple] = None, open_end: Optional[tuple] = None,
                 fragment_count: Optional[int] = None):
        """
        Initialize unclosed ring error.

        Args:
            message: Human-readable error message
            zone_id: Id of the source relation
            open_start: First coordinate of the chain that could not close
            open_end: Last coordinate of the chain that could not close
            fragment_count: Number of fragments the relation provided
        """
        context = {
            'open_start': list(open_start) if open_start is not None else None,
            'open_end': list(open_end) if open_end is not None else None,
            'fragment_count': fragment_count
        }
        super().__init__(message, zone_id=zone_id, error_code='UNCLOSED_RING', context=context)
        self.open_start = open_start
        self.open_end = open_end
        self.fragment_count = fragment_count


class InvalidGeometryError(GeometryError):
    """Exception raised when a geometry is invalid and cannot be repaired."""

    def __init__(self, message: str, zone_id: Optional[int] = None,
                 reason: Optional[str] = None, original_error: Optional[Exception] = None):
        """
        Initialize invalid geometry error.

        Args:
            message: Human-readable error message
            zone_id: Id of the source relation
            reason: Short validity reason (as reported by GEOS) or 'empty'
            original_error: Original exception raised by the geometry engine
        """
        context = {
            'reason': reason,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, zone_id=zone_id, error_code='INVALID_GEOMETRY', context=context)
        self.reason = reason
        self.original_error = original_error


class ContainmentError(CosmogonyError):
    """Exception raised when a zone's parent cannot be resolved."""

    def __init__(self, message: str, zone_id: Optional[int] = None,
                 candidate_ids: Optional[List[int]] = None,
                 error_code: str = 'CONTAINMENT_ERROR',
                 original_error: Optional[Exception] = None):
        """
        Initialize containment error.

        Args:
            message: Human-readable error message
            zone_id: Id of the zone being resolved
            candidate_ids: Candidate parent ids examined
            error_code: Error code for programmatic handling
            original_error: Original exception that caused this error
        """
        context = {
            'zone_id': zone_id,
            'candidate_ids': candidate_ids or [],
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code=error_code, context=context)
        self.zone_id = zone_id
        self.candidate_ids = candidate_ids or []
        self.original_error = original_error


class AmbiguousContainmentError(ContainmentError):
    """Exception raised when two candidate parents cannot be told apart."""

    def __init__(self, message: str, zone_id: Optional[int] = None,
                 candidate_ids: Optional[List[int]] = None):
        super().__init__(
            message,
            zone_id=zone_id,
            candidate_ids=candidate_ids,
            error_code='AMBIGUOUS_CONTAINMENT'
        )


class InvariantViolationError(CosmogonyError):
    """Exception raised when an internal hierarchy invariant does not hold.

    These errors indicate a logic fault rather than bad input and abort the run.
    """

    def __init__(self, message: str, zone_ids: Optional[List[int]] = None,
                 invariant: Optional[str] = None, diagnostics: Optional[List[Dict[str, Any]]] = None,
                 error_code: str = 'INVARIANT_VIOLATION'):
        """
        Initialize invariant violation error.

        Args:
            message: Human-readable error message
            zone_ids: Ids of the zones involved
            invariant: Name of the invariant that was violated
            diagnostics: Per-zone summaries (id, level, geometry summary)
            error_code: Error code for programmatic handling
        """
        context = {
            'zone_ids': zone_ids or [],
            'invariant': invariant,
            'diagnostics': diagnostics or []
        }
        super().__init__(message, error_code=error_code, context=context)
        self.zone_ids = zone_ids or []
        self.invariant = invariant
        self.diagnostics = diagnostics or []


class CycleDetectedError(InvariantViolationError):
    """Exception raised when the parent chain of a zone loops back on itself."""

    def __init__(self, message: str, cycle: List[int],
                 diagnostics: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            message,
            zone_ids=cycle,
            invariant='acyclic',
            diagnostics=diagnostics,
            error_code='CYCLE_DETECTED'
        )
        self.cycle = cycle


class InconsistentIndexError(InvariantViolationError):
    """Exception raised when the spatial index returns an id unknown to the registry."""

    def __init__(self, message: str, zone_ids: Optional[List[int]] = None):
        super().__init__(
            message,
            zone_ids=zone_ids,
            invariant='index_consistency',
            error_code='INCONSISTENT_INDEX'
        )


class ConfigurationError(CosmogonyError):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, config_key: Optional[str] = None,
                 config_value: Any = None, valid_values: Optional[List[Any]] = None):
        """
        Initialize configuration error.

        Args:
            message: Human-readable error message
            config_key: Configuration key that has invalid value
            config_value: Invalid configuration value
            valid_values: List of valid values for the configuration key
        """
        context = {
            'config_key': config_key,
            'config_value': str(config_value) if config_value is not None else None,
            'valid_values': [str(v) for v in valid_values] if valid_values else None
        }
        super().__init__(message, error_code='CONFIGURATION_ERROR', context=context)
        self.config_key = config_key
        self.config_value = config_value
        self.valid_values = valid_values or []


class DataLoadError(CosmogonyError):
    """Exception raised when boundary relations cannot be loaded."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 line_number: Optional[int] = None, original_error: Optional[Exception] = None):
        """
        Initialize data load error.

        Args:
            message: Human-readable error message
            file_path: Path to the file that caused the error
            line_number: Line number where the error occurred
            original_error: Original exception that caused this error
        """
        context = {
            'file_path': file_path,
            'line_number': line_number,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='DATA_LOAD_ERROR', context=context)
        self.file_path = file_path
        self.line_number = line_number
        self.original_error = original_error


class FileAccessError(CosmogonyError):
    """Exception raised for file access and I/O errors."""

    def __init__(self, message: str, file_path: str, operation: str,
                 original_error: Optional[Exception] = None):
        """
        Initialize file access error.

        Args:
            message: Human-readable error message
            file_path: Path to the file that caused the error
            operation: Type of operation that failed (read, write, create, etc.)
            original_error: Original exception that caused this error
        """
        context = {
            'file_path': file_path,
            'operation': operation,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='FILE_ACCESS_ERROR', context=context)
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class OutputGenerationError(CosmogonyError):
    """Exception raised for errors during output generation."""

    def __init__(self, message: str, output_type: Optional[str] = None,
                 output_path: Optional[str] = None, record_count: Optional[int] = None,
                 original_error: Optional[Exception] = None):
        """
        Initialize output generation error.

        Args:
            message: Human-readable error message
            output_type: Type of output being generated (zones, warnings, report)
            output_path: Path where output was being written
            record_count: Number of records being written
            original_error: Original exception that caused this error
        """
        context = {
            'output_type': output_type,
            'output_path': output_path,
            'record_count': record_count,
            'original_error': str(original_error) if original_error else None,
            'original_error_type': type(original_error).__name__ if original_error else None
        }
        super().__init__(message, error_code='OUTPUT_GENERATION_ERROR', context=context)
        self.output_type = output_type
        self.output_path = output_path
        self.record_count = record_count
        self.original_error = original_error


# Utility functions for exception handling

def create_unclosed_ring_error(zone_id: int, chain: List[tuple],
                               fragment_count: int) -> UnclosedRingError:
    """
    Create a standardized unclosed ring error.

    Args:
        zone_id: Id of the source relation
        chain: Coordinates of the chain that could not be closed
        fragment_count: Number of fragments the relation provided

    Returns:
        UnclosedRingError instance
    """
    start = chain[0] if chain else None
    end = chain[-1] if chain else None
    message = (
        f"Relation {zone_id}: ring starting at {start} stops at {end} "
        f"and no remaining fragment closes it ({fragment_count} fragments)"
    )

    return UnclosedRingError(
        message=message,
        zone_id=zone_id,
        open_start=start,
        open_end=end,
        fragment_count=fragment_count
    )


def create_cycle_error(cycle: List[int],
                       diagnostics: Optional[List[Dict[str, Any]]] = None) -> CycleDetectedError:
    """
    Create a standardized cycle detection error.

    Args:
        cycle: Zone ids along the looping parent chain
        diagnostics: Per-zone summaries for the zones in the cycle

    Returns:
        CycleDetectedError instance
    """
    chain = ' -> '.join(str(zone_id) for zone_id in cycle)
    message = f"Cycle detected in zone hierarchy: {chain}"

    return CycleDetectedError(message=message, cycle=cycle, diagnostics=diagnostics)


def is_recoverable_error(error: Exception) -> bool:
    """
    Determine if an error is recoverable.

    Args:
        error: Exception to check

    Returns:
        True if the run can continue by excluding the affected zone
    """
    # Invariant violations signal a logic fault, never bad input
    if isinstance(error, InvariantViolationError):
        return False

    if isinstance(error, ConfigurationError):
        return False

    # A single zone's geometry or containment failure only drops that zone
    if isinstance(error, (GeometryError, ContainmentError)):
        return True

    if isinstance(error, (FileAccessError, DataLoadError)):
        return True

    # For unknown errors, assume they might be recoverable
    return True


def get_error_severity(error: Exception) -> str:
    """
    Get the severity level of an error.

    Args:
        error: Exception to evaluate

    Returns:
        Severity level string (low, medium, high, critical)
    """
    if isinstance(error, (InvariantViolationError, ConfigurationError)):
        return 'critical'
    elif isinstance(error, (DataLoadError, FileAccessError, OutputGenerationError)):
        return 'high'
    elif isinstance(error, (GeometryError, ContainmentError)):
        return 'medium'
    else:
        return 'medium'
