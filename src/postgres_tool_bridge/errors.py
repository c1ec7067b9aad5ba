"""Structured error taxonomy for the PostgreSQL tool bridge.

Every fallible operation in the bridge raises one of the errors below.
The tool dispatcher is the single place that turns them into the
caller-visible envelope; nothing else catches them.

- ConfigurationError: malformed connection URL or invalid settings (fatal at startup)
- ValidationError: bad arguments, disallowed statement class, bad identifier
- DatabaseError: any engine failure, carrying SQLSTATE code and detail

Example:
    >>> try:
    ...     raise DatabaseError("relation \"t\" does not exist", code="42P01")
    ... except StructuredError as e:
    ...     error_json = e.to_dict()
    ...     print(error_json["category"])
    execution
"""
from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"          # Argument shape / SQL class / identifier errors
    EXECUTION = "execution"            # Database engine errors
    CONFIGURATION = "configuration"    # Startup configuration errors
    UNKNOWN = "unknown"                # Unclassified errors


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StructuredError(Exception):
    """Base class for all structured errors.

    Attributes:
        message: Human-readable error message
        category: ErrorCategory classification
        severity: ErrorSeverity level
        retryable: Whether the operation can be retried
        details: Additional context (dict)
        timestamp: When the error occurred
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.retryable = retryable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary.

        Returns:
            Dictionary with error details in predictable schema:
            {
                "error_type": "ErrorClassName",
                "message": "Human-readable message",
                "category": "validation|execution|configuration|unknown",
                "severity": "info|warning|error|critical",
                "retryable": true|false,
                "details": {...},
                "timestamp": "2024-01-01T12:00:00.000000+00:00"
            }
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class ValidationError(StructuredError):
    """Error during argument or statement validation.

    Raised when tool arguments don't match the input contract, when the
    statement class is not allowed for the chosen tool, or when an
    identifier fails the identifier pattern.

    Attributes:
        issues: List of ``(field_path, reason)`` pairs, empty for
            single-cause failures.

    Example:
        >>> raise ValidationError(
        ...     "Invalid arguments",
        ...     issues=[("query", "Field required")]
        ... )
    """

    def __init__(
        self,
        message: str,
        issues: Optional[List[tuple[str, str]]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.issues = list(issues or [])
        merged = dict(details or {})
        if self.issues:
            merged.setdefault("issues", [{"path": p, "reason": r} for p, r in self.issues])
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            retryable=False,  # Caller must change the input
            details=merged
        )


class DatabaseError(StructuredError):
    """Error raised by the database engine or the connection pool.

    Raw driver exceptions never leave the pool manager; they are wrapped
    here with the engine's SQLSTATE code and diagnostic detail.

    Example:
        >>> raise DatabaseError(
        ...     "canceling statement due to statement timeout",
        ...     code="57014"
        ... )
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Optional[str] = None,
        retryable: bool = True,  # Connection loss and timeouts are usually transient
    ):
        self.code = code
        self.detail = detail
        details: Dict[str, Any] = {}
        if code:
            details["code"] = code
        if detail:
            details["detail"] = detail
        super().__init__(
            message=message,
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            retryable=retryable,
            details=details
        )


class ConfigurationError(StructuredError):
    """Error in bridge configuration.

    Raised for a malformed connection URL or settings that violate
    their constraints. Always fatal at startup.

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid connection string: Port out of range 0-65535",
        ...     details={"field": "port"}
        ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            retryable=False,  # Config errors need manual fix
            details=details
        )
