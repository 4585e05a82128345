# src/taskflow/core/errors.py

"""
Error taxonomy.

Validation errors (NoTaskSelected, SessionTooShort, InvalidTransition) are raised
before any remote call. Remote failures (WriteError, ReadError, NotFoundError, StorageError,
AttachmentUploadError) are passed to the caller as they are; nothing retries.
"""

from __future__ import annotations


class TaskflowError(Exception):
    """Base class for every error raised by the core."""


class NoTaskSelected(TaskflowError):
    def __init__(self, message: str = "Select a task first") -> None:
        super().__init__(message)


class SessionTooShort(TaskflowError):
    def __init__(self, elapsed_ms: int, minimum_ms: int) -> None:
        super().__init__(f"Session too short to save ({elapsed_ms} ms < {minimum_ms} ms)")
        self.elapsed_ms = elapsed_ms
        self.minimum_ms = minimum_ms


class InvalidTransition(TaskflowError):
    """A session machine operation was called in a state that does not allow it."""


class WriteError(TaskflowError):
    """Create/update/delete failed (network, permission, storage)."""


class NotFoundError(TaskflowError):
    def __init__(self, record_id: str, collection: str = "") -> None:
        where = f" in {collection}" if collection else ""
        super().__init__(f"Record {record_id!r} not found{where}")
        self.record_id = record_id
        self.collection = collection


class SubscriptionError(TaskflowError):
    """The snapshot stream itself failed."""


class ReadError(TaskflowError):
    """A one-shot read (fetch) failed."""


class StorageError(TaskflowError):
    """Attachment storage could not store the bytes or issue a URL."""


class AttachmentUploadError(TaskflowError):
    """Task creation aborted because its attachment did not upload."""


class DuplicateMemberError(TaskflowError):
    def __init__(self, email: str) -> None:
        super().__init__(f"{email} is already on the team")
        self.email = email
