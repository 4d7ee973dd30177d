"""
Result types for explicit success/failure tracking while watching disputes.

The challenge monitor walks the disputes of many proposals in one pass; a
bad proposal must not hide the others, so each one produces a Result and the
pass produces a ChallengeScanSummary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Severity levels for processing errors."""

    WARNING = "warning"  # Continue processing, log issue
    ERROR = "error"  # Skip this item, continue others
    CRITICAL = "critical"  # Protocol violation, needs attention


@dataclass
class ProcessingError:
    """
    Represents a single processing error with context.

    Attributes:
        source: Component that generated the error (e.g., "challenge_check")
        message: Human-readable error description
        severity: How severe the error is
        context: Additional context like proposal_id, block, index
        exception: Original exception if available
    """

    source: str
    message: str
    severity: ErrorSeverity
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
        }


@dataclass
class Result(Generic[T]):
    """
    Result type that carries success/failure information.

    Attributes:
        success: Whether the operation succeeded
        data: The result data if successful
        errors: List of errors encountered (can have errors even on success for warnings)
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        """Create a successful result with data."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ProcessingError) -> "Result[T]":
        """Create a failed result with an error."""
        return cls(success=False, errors=[error])

    def has_critical_errors(self) -> bool:
        """Check if result has any CRITICAL level errors."""
        return any(e.severity == ErrorSeverity.CRITICAL for e in self.errors)

    def get_error_messages(self) -> List[str]:
        """Get all error messages as strings."""
        return [e.message for e in self.errors]


@dataclass
class ChallengeScanSummary:
    """
    Summary of one challenge-monitor pass over a block range.

    Tracks how many RootSubmitted events were read, what the dispute walk
    decided for each proposal, and which proposals could not be processed.
    """

    start_block: int
    end_block: int

    # Counts
    events_processed: int = 0
    proposals_checked: int = 0
    proposals_failed: int = 0
    challenges_found: int = 0
    defeats_found: int = 0
    waiting: int = 0
    protocol_violations: int = 0

    # Details
    errors: List[ProcessingError] = field(default_factory=list)
    challengeable: List[Dict[str, Any]] = field(default_factory=list)
    defeatable: List[Dict[str, Any]] = field(default_factory=list)

    def add_error_from_result(self, result: Result) -> None:
        """Add all errors from a Result to the summary."""
        self.errors.extend(result.errors)

    def has_errors(self) -> bool:
        """Check if any errors (not just warnings) occurred."""
        return any(
            e.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
            for e in self.errors
        )

    def error_count(self) -> int:
        """Count total errors (excluding warnings)."""
        return sum(
            1
            for e in self.errors
            if e.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "start_block": self.start_block,
            "end_block": self.end_block,
            "counts": {
                "events_processed": self.events_processed,
                "proposals_checked": self.proposals_checked,
                "proposals_failed": self.proposals_failed,
                "challenges_found": self.challenges_found,
                "defeats_found": self.defeats_found,
                "waiting": self.waiting,
                "protocol_violations": self.protocol_violations,
            },
            "error_count": self.error_count(),
            "errors": [e.to_dict() for e in self.errors],
            "challengeable": self.challengeable,
            "defeatable": self.defeatable,
        }
