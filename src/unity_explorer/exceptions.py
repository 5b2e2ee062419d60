# src/unity_explorer/exceptions.py

"""
Exception hierarchy for unity_explorer.

Only configuration loading raises across component boundaries; everything else
is folded into result values by the component that detects it.
"""


class UnityExplorerError(Exception):
    """Base class for all unity_explorer errors."""

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details is not None:
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(UnityExplorerError):
    """Raised when the configuration file or an option value is invalid."""

    pass


class PatternError(ConfigurationError):
    """A user supplied pattern or template could not be compiled or applied."""

    def __init__(
        self,
        message: str,
        pattern: str,
        option: str | None = None,
        details: Exception | None = None,
    ):
        self.pattern = pattern
        self.option = option
        full_message = f"[Pattern] {message}"
        if option:
            full_message += f" (Option: '{option}')"
        super().__init__(full_message, details)


class DiscoveryError(UnityExplorerError):
    """A test source folder or file could not be read."""

    pass


class DebugLaunchError(UnityExplorerError):
    """The debugger could not be prepared or started."""

    pass


# 🔼⚙️
