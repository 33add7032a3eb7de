from __future__ import annotations


class RevElevateError(Exception):
    """Base class for failures the dashboard reports back to the user."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: str = "") -> None:
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class LedgerError(RevElevateError):
    user_message = "The uploaded ledger could not be processed."


class MalformedLedgerError(LedgerError):
    user_message = (
        "The ledger needs a header row and at least one data row. "
        "Check the file and upload it again."
    )


class EmptyLedgerError(LedgerError):
    user_message = "The ledger does not contain any usable transaction rows."


class ExtractionError(LedgerError):
    user_message = (
        "Could not extract metrics from this document. "
        "Try a CSV export of the ledger instead."
    )


class NoDataError(RevElevateError):
    user_message = "Upload a sales ledger before generating a strategic plan."


class InvalidPlanError(RevElevateError, ValueError):
    user_message = "The strategic plan returned by the model was incomplete."


class PlanGenerationError(RevElevateError):
    user_message = (
        "Failed to generate strategic plan. Please check your API key and try again."
    )
