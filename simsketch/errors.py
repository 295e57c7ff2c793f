"""
Error types shared by the similarity sketches.

Two failure families exist: bad constructor options and bad call-time
arguments. Both derive from ValueError so callers that only know the
builtin hierarchy still catch them.
"""

from typing import Optional, Any, Dict


class SketchError(Exception):
    """
    Base exception for all simsketch errors.

    Provides common functionality for error tracking and reporting.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize sketch error.

        Args:
            message: Error message
            details: Optional detailed error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SketchError, ValueError):
    """
    Raised when constructor options are invalid.

    Out-of-range hash widths, too many bands for a signature and negative
    thresholds all land here. Values are never clamped.
    """

    def __init__(self, message: str,
                 option: Optional[str] = None,
                 value: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            option: Name of the offending option
            value: The rejected value
            details: Additional error context
        """
        super().__init__(message, details)
        self.option = option
        self.value = value

        self.details.update({
            'option': option,
            'value': value
        })


class InputValidationError(SketchError, ValueError):
    """
    Raised when a call-time argument has the wrong type or shape.

    Nothing is computed or mutated before this is raised.
    """

    def __init__(self, message: str,
                 argument: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.argument = argument
        self.details['argument'] = argument
