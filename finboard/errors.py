class FinboardError(Exception):
    """Base class for errors raised by finboard."""


class LedgerValidationError(FinboardError):
    """A create or update payload was rejected.

    `error` is the dict produced by the validators in finboard.functional,
    e.g. {"error": "non_positive_amount", "message": ..., "amount": -5}.
    """

    def __init__(self, error: dict):
        self.error = error
        super().__init__(error.get("message", error.get("error", "invalid payload")))


class SeedFileError(FinboardError):
    """The seed file is missing required keys or holds malformed records."""
