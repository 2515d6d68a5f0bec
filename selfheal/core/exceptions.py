class HealingError(RuntimeError):
    """Raised when locator healing fails."""


class LocatorSyntaxError(HealingError):
    """Raised when a locator string is outside the supported grammar."""


class SuggestionError(HealingError):
    """Raised when a suggestion provider cannot produce candidates."""


class ReportLockTimeout(HealingError):
    """Raised when the summary lock cannot be acquired in time."""
