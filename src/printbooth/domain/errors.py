"""Error taxonomy for template and print operations."""

from uuid import UUID


class PrintBoothError(Exception):
    """Base class for errors surfaced to the operator."""


class TransientFetchError(PrintBoothError):
    """The store could not be queried during a poll tick."""


class NoEmptySlotError(PrintBoothError):
    """The template has no empty slot for the requested placement."""


class SlotIndexError(PrintBoothError):
    """A slot index is out of range or points at an empty slot."""


class NothingToPrintError(PrintBoothError):
    """The template has no filled slots."""


class PersistenceError(PrintBoothError):
    """A store write failed."""


class UnreliableProviderDataError(PrintBoothError):
    """The print provider returned incomplete or unparsable data."""


class HandoffStateError(PrintBoothError):
    """A print handoff step was requested in the wrong state."""


class UnsavedEditsError(PrintBoothError):
    """Printing needs a decision about unsaved photo edits."""

    def __init__(self, photo_ids: list[UUID]) -> None:
        super().__init__(f"{len(photo_ids)} photo(s) have unsaved edits")
        self.photo_ids = photo_ids


class PrintHelperUnavailableError(PrintBoothError):
    """The desktop print helper is not connected or did not answer."""


class PrintSubmissionError(PrintBoothError):
    """A print facility rejected or failed to accept the rendered sheet."""


class PhotoNotFoundError(PrintBoothError):
    """The requested photo does not exist for the owner."""


class TemplateNotOpenError(PrintBoothError):
    """No template view is open for the owner."""
