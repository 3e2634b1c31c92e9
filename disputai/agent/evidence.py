"""Stores evidence files one at a time and reports each outcome."""

import mimetypes
import time
from pathlib import Path, PurePath
from typing import Callable, Iterable

from disputai.config import settings
from disputai.data.storage import StorageBackend
from disputai.errors import StorageError
from disputai.models.evidence import EvidenceFile, EvidenceItem, UploadOutcome
from disputai.utils.logging import AuditLogger, get_logger

logger = get_logger("evidence", settings.log_level)


def object_path(file_name: str, now_ms: int) -> str:
    """Storage path for an upload: millisecond timestamp plus the base name."""
    return f"{now_ms}-{PurePath(file_name).name}"


def read_evidence_files(paths: Iterable[str]) -> tuple[list[EvidenceFile], list[UploadOutcome]]:
    """Load files from disk; unreadable paths come back as failed outcomes."""
    files, unreadable = [], []
    for raw in paths:
        path = Path(raw).expanduser()
        try:
            data = path.read_bytes()
        except OSError as e:
            unreadable.append(UploadOutcome(name=path.name or raw, error=f"Could not read {raw}: {e}"))
            continue
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        files.append(EvidenceFile(path.name, data, content_type))
    return files, unreadable


class EvidenceCollector:
    """Uploads evidence files in the order they were selected.

    Every file gets an UploadOutcome. Failed files carry the error and no
    item; nothing is retried.
    """

    def __init__(
        self,
        storage: StorageBackend,
        bucket: str | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.bucket = bucket or settings.wizard_config.storage_bucket
        self.audit_logger = audit_logger
        self._clock = clock

    def collect(self, files: Iterable[EvidenceFile], folder: str | None = None) -> list[UploadOutcome]:
        """Upload files in order; ``folder`` groups the objects of one dispute."""
        outcomes = []
        for file in files:
            path = object_path(file.name, int(self._clock() * 1000))
            if folder:
                path = f"{folder}/{path}"
            try:
                url = self.storage.upload_object(self.bucket, path, file.data, file.content_type)
            except StorageError as e:
                logger.warning(f"Upload of {file.name} failed: {e}")
                outcome = UploadOutcome(name=file.name, error=str(e))
            else:
                outcome = UploadOutcome(name=file.name, item=EvidenceItem(name=file.name, url=url))

            if self.audit_logger:
                self.audit_logger.log_evidence_upload(
                    file.name, outcome.item.url if outcome.ok else None, outcome.error
                )
            outcomes.append(outcome)
        return outcomes
