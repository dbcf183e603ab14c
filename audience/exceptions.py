"""
Exception classes for the audience filter API.
"""


class AudienceError(Exception):
    """Base exception for all audience filter errors."""
    pass


class StorageError(AudienceError):
    """Raised when the preview store is missing or unusable."""
    pass


class QueryError(AudienceError):
    """Raised when a compiled query fails to execute."""
    pass


class ConfigError(AudienceError):
    """Raised when configuration values are invalid."""
    pass


class ValidationError(AudienceError):
    """
    Raised when an expression fails validation at the API boundary.

    Attributes:
        violations: The list of Violation records returned by the validator
    """

    def __init__(self, violations):
        self.violations = list(violations)
        summary = "; ".join(v.message for v in self.violations[:5])
        if len(self.violations) > 5:
            summary += f" (+{len(self.violations) - 5} more)"
        super().__init__(f"Invalid audience expression: {summary}")
