"""
Custom exceptions for the cache load-testing harness.

Every exception carries a machine-readable error code, a user-facing message,
technical details and a suggestion, following one pattern:

    [E110] Key index 12 is outside the key domain [0, 10)
      Details: Parameter: index; Expected: [0, 10); Actual: 12
      Suggestion: Check elements_per_thread and load_concurrency

Fatal errors (configuration, phase setup) abort the run before or between
phases. Cache operation failures are recorded as outcomes and never abort a
phase. Statistics errors are logged by the sampler and skipped.
"""

from dataclasses import dataclass, field
from typing import Optional, Any
from enum import Enum


class ErrorCode(Enum):
    """Machine-readable error codes."""
    # Configuration errors (1xx)
    CONFIG_MISSING_REQUIRED = "E101"
    CONFIG_INVALID_VALUE = "E102"
    CONFIG_FILE_NOT_FOUND = "E103"
    CONFIG_PARSE_ERROR = "E104"
    CONFIG_UNKNOWN_PARAMETER = "E105"
    GENERATOR_EXHAUSTED = "E110"

    # Phase errors (2xx)
    PHASE_SETUP_FAILED = "E201"
    PHASE_INTERRUPTED = "E202"

    # Cache errors (3xx)
    CACHE_OPERATION_FAILED = "E301"
    CACHE_CLOSED = "E302"

    # Statistics errors (4xx)
    STATISTICS_TIER_NOT_FOUND = "E401"
    STATISTICS_METRIC_MISSING = "E402"

    # Report errors (5xx)
    REPORT_WRITE_FAILED = "E501"

    # Internal errors (9xx)
    INTERNAL_ERROR = "E901"


@dataclass
class CBError:
    """
    Structured error information.

    Attributes:
        code: Machine-readable error code.
        message: User-facing error message.
        details: Technical details for debugging.
        suggestion: How to fix the issue.
        context: Additional context information.
    """
    code: ErrorCode
    message: str
    details: str = ""
    suggestion: str = ""
    context: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"[{self.code.value}] {self.message}"]
        if self.details:
            lines.append(f"  Details: {self.details}")
        if self.suggestion:
            lines.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(lines)


class CacheBenchException(Exception):
    """Base exception class. Subclasses fill in details and suggestions."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL_ERROR,
                 details: str = "", suggestion: str = "", **context):
        self.error = CBError(
            code=code,
            message=message,
            details=details,
            suggestion=suggestion,
            context=context
        )
        super().__init__(str(self.error))

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def suggestion(self) -> str:
        return self.error.suggestion


def _join_details(parts) -> str:
    return "; ".join(p for p in parts if p)


class ConfigurationError(CacheBenchException):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Non-positive concurrency or element count
        - Unknown report format or outcome category
        - Configuration file not found or not valid YAML
    """

    def __init__(self, message: str, parameter: str = None,
                 expected: Any = None, actual: Any = None,
                 suggestion: str = None,
                 code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE):
        super().__init__(
            message=message,
            code=code,
            details=_join_details([
                f"Parameter: {parameter}" if parameter else "",
                f"Expected: {expected}" if expected is not None else "",
                f"Actual: {actual}" if actual is not None else "",
            ]),
            suggestion=suggestion or self._default_suggestion(code),
            parameter=parameter,
            expected=expected,
            actual=actual
        )

    @staticmethod
    def _default_suggestion(code: ErrorCode) -> str:
        suggestions = {
            ErrorCode.CONFIG_MISSING_REQUIRED: "Provide the required parameter via command line or config file",
            ErrorCode.CONFIG_INVALID_VALUE: "Check the parameter value and correct it",
            ErrorCode.CONFIG_FILE_NOT_FOUND: "Verify the config file path exists",
            ErrorCode.CONFIG_PARSE_ERROR: "Check config file syntax (YAML mapping expected)",
            ErrorCode.CONFIG_UNKNOWN_PARAMETER: "Remove or rename the unknown parameter",
            ErrorCode.GENERATOR_EXHAUSTED: "Check elements_per_thread and load_concurrency",
        }
        return suggestions.get(code, "Check the configuration and try again")


class GeneratorExhaustion(ConfigurationError):
    """Raised when a key index outside [0, N) is requested from a generator."""

    def __init__(self, index: int, domain_size: int, suggestion: str = None):
        super().__init__(
            f"Key index {index} is outside the key domain [0, {domain_size})",
            parameter="index",
            expected=f"[0, {domain_size})",
            actual=index,
            suggestion=suggestion,
            code=ErrorCode.GENERATOR_EXHAUSTED
        )
        self.index = index
        self.domain_size = domain_size


class PhaseSetupError(CacheBenchException):
    """
    Raised when a workload phase cannot be planned.

    Examples:
        - Concurrency degree below 1
        - Operation kind without a registered implementation
    """

    def __init__(self, message: str, phase: str = None, reason: str = None,
                 suggestion: str = None,
                 code: ErrorCode = ErrorCode.PHASE_SETUP_FAILED):
        super().__init__(
            message=message,
            code=code,
            details=_join_details([
                f"Phase: {phase}" if phase else "",
                f"Reason: {reason}" if reason else "",
            ]),
            suggestion=suggestion or "Fix the phase configuration and re-run",
            phase=phase,
            reason=reason
        )


class RunInterrupted(CacheBenchException):
    """Raised inside the orchestrator when a stop was requested while a phase ran or before it started."""

    def __init__(self, message: str = "Run interrupted before completion", phase: str = None):
        super().__init__(
            message=message,
            code=ErrorCode.PHASE_INTERRUPTED,
            details=f"Phase: {phase}" if phase else "",
            suggestion="Re-run the benchmark when ready",
            phase=phase
        )


class CacheOperationError(CacheBenchException):
    """Raised by a cache when a single put/get fails."""

    def __init__(self, message: str, operation: str = None, key: Any = None,
                 code: ErrorCode = ErrorCode.CACHE_OPERATION_FAILED):
        super().__init__(
            message=message,
            code=code,
            details=_join_details([
                f"Operation: {operation}" if operation else "",
                f"Key: {key}" if key is not None else "",
            ]),
            suggestion="Check the cache under test",
            operation=operation,
            key=key
        )


class StatisticsUnavailable(CacheBenchException):
    """Raised when a statistic cannot be read from the cache."""

    def __init__(self, message: str, tier: str = None, metric: str = None,
                 code: ErrorCode = ErrorCode.STATISTICS_METRIC_MISSING):
        super().__init__(
            message=message,
            code=code,
            details=_join_details([
                f"Tier: {tier}" if tier else "",
                f"Metric: {metric}" if metric else "",
            ]),
            suggestion="Check the tier name configured for sampling",
            tier=tier,
            metric=metric
        )


class TierNotFound(StatisticsUnavailable):
    """Raised by CacheUnderTest.get_statistics() for an unknown tier name."""

    def __init__(self, tier: str, available=None):
        super().__init__(
            f"Unknown statistics tier: {tier}",
            tier=tier,
            code=ErrorCode.STATISTICS_TIER_NOT_FOUND
        )
        self.tier = tier
        self.available = list(available) if available else []


class ReportWriteError(CacheBenchException):
    """Raised when a report artifact cannot be persisted."""

    def __init__(self, message: str, path: str = None, report_format: str = None,
                 suggestion: str = None):
        super().__init__(
            message=message,
            code=ErrorCode.REPORT_WRITE_FAILED,
            details=_join_details([
                f"Path: {path}" if path else "",
                f"Format: {report_format}" if report_format else "",
            ]),
            suggestion=suggestion or "Verify the report directory is writable",
            path=path,
            report_format=report_format
        )
