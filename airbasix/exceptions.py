"""
Exception hierarchy for airbasix.

Every error raised by the sync carries a short machine-readable ``code``
that is logged next to the message, e.g. ``"Save failed [wix_http_400]"``.
"""


class AirbasixError(Exception):
    """Base exception for all airbasix errors."""

    code: str = "airbasix_error"

    def __init__(self, message: str = "An error occurred", code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def describe(self) -> str:
        """Return the message with its code appended, for log lines."""
        return f"{self.message} [{self.code}]"


def describe_error(error: BaseException) -> str:
    """
    Format any exception as "<message> [<code>]".

    Exceptions that are not AirbasixError subclasses get their class name
    as the code.
    """
    if isinstance(error, AirbasixError):
        return error.describe()
    return f"{error} [{type(error).__name__}]"
