"""
Error Types Module
------------------
Provides the exception and warning types shared by the HRV processors and analyzers.
"""
import warnings


class InsufficientDataError(ValueError):
    """Raised when a series has fewer points than a computation requires."""


class InvalidParameterError(ValueError):
    """Raised for malformed input or a configuration value outside its valid domain."""


class DegenerateResultWarning(UserWarning):
    """Emitted when a result is mathematically undefined (e.g. zero variance)."""


def warn_degenerate(logger, message: str) -> None:
    """
    Logs a degenerate-result message and emits a DegenerateResultWarning.
    Args:
        logger (logging.Logger): Logger of the calling component.
        message (str): Message, already prefixed with the component name.
    """
    logger.warning(message)
    warnings.warn(message, DegenerateResultWarning, stacklevel=3)
