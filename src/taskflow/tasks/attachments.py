# src/taskflow/tasks/attachments.py

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path, PurePath

from ..core.errors import AttachmentUploadError
from ..core.ports import AttachmentStorage
from .task_models import Attachment, TaskDraft
from .task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PendingFile:
    """A file picked by the user that has not been uploaded yet."""

    filename: str
    data: bytes
    content_type: str | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> PendingFile:
        p = Path(path).expanduser()
        guessed, _ = mimetypes.guess_type(p.name)
        return cls(filename=p.name, data=p.read_bytes(), content_type=guessed)


async def create_task(
    store: TaskStore,
    storage: AttachmentStorage,
    draft: TaskDraft,
    file: PendingFile | None = None,
) -> str:
    """
    Create a task, uploading its attachment first when there is one.

    The task record is only written once the upload has produced a URL, so a
    stored task either carries a resolved attachment or none. If the upload
    fails nothing is written and AttachmentUploadError is raised.

    Bytes already stored before a later failure (e.g. the task write) are left
    where they are.
    """
    # Validate before touching storage so a bad draft never uploads anything.
    if not draft.title or not draft.title.strip():
        raise ValueError("title is required")

    attachment: Attachment | None = None
    if file is not None:
        name = PurePath(file.filename).name
        owner_id = store.owner.user_id
        try:
            url = await storage.upload(owner_id, name, file.data, file.content_type)
        except Exception as e:
            logger.warning("Attachment upload failed owner=%s file=%s: %s", owner_id, name, e)
            raise AttachmentUploadError(f"failed to upload {name!r}: {e}") from e
        attachment = Attachment(name=name, url=url)

    try:
        return await store.add(draft, attachment=attachment)
    except Exception:
        if attachment is not None:
            logger.warning("Task write failed; uploaded attachment left orphaned url=%s", attachment.url)
        raise
