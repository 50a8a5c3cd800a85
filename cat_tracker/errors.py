"""Errors raised by the re-identification and reconciliation core.

Every failure reaches the caller as one of these types; nothing is turned into
a made-up success value.
"""


class CatTrackerError(Exception):
    """Base class for all cat tracker errors."""


class ExtractionFailed(CatTrackerError):
    """Feature extraction was unreachable, timed out, or returned something unusable.

    Recoverable: the caller may retry, or fall back to creating a cat without
    extracted features.
    """


class ValidationError(CatTrackerError):
    """The submission itself is invalid (missing name, missing image, bad coordinates)."""


class UnknownCat(CatTrackerError):
    """A referenced cat id does not exist; the caller's catalog view is stale."""

    def __init__(self, cat_id):
        super().__init__(f"Cat {cat_id!r} does not exist")
        self.cat_id = cat_id


class CommitFailed(CatTrackerError):
    """The store transaction failed and was rolled back."""


class NotCatOwner(CatTrackerError):
    """Only the submitter who created a cat may edit its metadata."""
