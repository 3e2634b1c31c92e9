"""Record and object storage backends."""

from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from disputai.config import settings
from disputai.errors import StorageError
from disputai.models.dispute import DisputeLogEntry, DisputeRecord
from disputai.models.evidence import ProofBundleRecord


class StorageBackend(Protocol):
    """Operations the intake flow and the dispute tools need from a backend."""

    def insert_dispute(self, payload: dict[str, Any]) -> str: ...

    def insert_proof_bundle(self, payload: dict[str, Any]) -> str: ...

    def get_dispute(self, dispute_id: str, user_id: str) -> DisputeRecord | None: ...

    def list_disputes(self, user_id: str, archived: bool | None = None) -> list[DisputeRecord]: ...

    def update_dispute(self, dispute_id: str, user_id: str, changes: dict[str, Any]) -> bool: ...

    def delete_dispute(self, dispute_id: str, user_id: str) -> bool: ...

    def get_proof_bundles(self, dispute_id: str, user_id: str) -> list[ProofBundleRecord]: ...

    def insert_dispute_log(self, entry: DisputeLogEntry) -> None: ...

    def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str: ...


class Storage:
    """JSON-file backend rooted at ``settings.data_dir``.

    Disputes and proof bundles are one file per record; uploaded objects are
    written below ``objects/<bucket>/`` and addressed by ``file://`` URLs.
    """

    def __init__(self, data_dir: Path | None = None):
        self.data_dir = Path(data_dir) if data_dir else settings.data_dir
        self.disputes_dir = self.data_dir / "disputes"
        self.proof_bundles_dir = self.data_dir / "proof_bundles"
        self.objects_dir = self.data_dir / "objects"
        self.log_file = self.data_dir / "dispute_logs.jsonl"

        for directory in (self.disputes_dir, self.proof_bundles_dir, self.objects_dir):
            directory.mkdir(parents=True, exist_ok=True)

    # Records

    def _write_json(self, path: Path, data: str) -> None:
        try:
            path.write_text(data, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Could not write {path.name}: {e}") from e

    def _load(self, model, path: Path):
        try:
            return model.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StorageError(f"Corrupt record file {path.name}: {e}") from e

    def _read_disputes(self) -> list[DisputeRecord]:
        return [self._load(DisputeRecord, path) for path in self.disputes_dir.glob("*.json")]

    def insert_dispute(self, payload: dict[str, Any]) -> str:
        try:
            record = DisputeRecord(**payload)
        except ValidationError as e:
            raise StorageError(f"Dispute rejected: {e}") from e
        self._write_json(self.disputes_dir / f"{record.id}.json", record.model_dump_json(indent=2))
        return record.id

    def insert_proof_bundle(self, payload: dict[str, Any]) -> str:
        try:
            bundle = ProofBundleRecord(**payload)
        except ValidationError as e:
            raise StorageError(f"Proof bundle rejected: {e}") from e
        self._write_json(self.proof_bundles_dir / f"{bundle.id}.json", bundle.model_dump_json(indent=2))
        return bundle.id

    def get_dispute(self, dispute_id: str, user_id: str) -> DisputeRecord | None:
        path = self.disputes_dir / f"{dispute_id}.json"
        if not path.is_file():
            return None
        record = self._load(DisputeRecord, path)
        # Records of other users are invisible
        return record if record.user_id == user_id else None

    def list_disputes(self, user_id: str, archived: bool | None = None) -> list[DisputeRecord]:
        records = [
            r for r in self._read_disputes()
            if r.user_id == user_id and (archived is None or r.archived == archived)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def update_dispute(self, dispute_id: str, user_id: str, changes: dict[str, Any]) -> bool:
        record = self.get_dispute(dispute_id, user_id)
        if record is None:
            return False
        updated = record.model_copy(update=changes)
        self._write_json(self.disputes_dir / f"{dispute_id}.json", updated.model_dump_json(indent=2))
        return True

    def delete_dispute(self, dispute_id: str, user_id: str) -> bool:
        if self.get_dispute(dispute_id, user_id) is None:
            return False
        try:
            (self.disputes_dir / f"{dispute_id}.json").unlink()
        except OSError as e:
            raise StorageError(f"Could not delete dispute {dispute_id}: {e}") from e
        return True

    def get_proof_bundles(self, dispute_id: str, user_id: str) -> list[ProofBundleRecord]:
        bundles = []
        for path in self.proof_bundles_dir.glob("*.json"):
            bundle = self._load(ProofBundleRecord, path)
            if bundle.dispute_id == dispute_id and bundle.user_id == user_id:
                bundles.append(bundle)
        bundles.sort(key=lambda b: b.created_at)
        return bundles

    def insert_dispute_log(self, entry: DisputeLogEntry) -> None:
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            raise StorageError(f"Could not write dispute log: {e}") from e

    def get_dispute_logs(self, dispute_id: str) -> list[DisputeLogEntry]:
        if not self.log_file.is_file():
            return []
        entries = []
        try:
            with open(self.log_file, encoding="utf-8") as f:
                for line in f:
                    if line.strip():
                        entries.append(DisputeLogEntry.model_validate_json(line))
        except (OSError, ValidationError) as e:
            raise StorageError(f"Corrupt dispute log: {e}") from e
        return [e for e in entries if e.dispute_id == dispute_id]

    # Objects

    def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        target = self.objects_dir / bucket / path
        if target.exists():
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Upload of {path} failed: {e}") from e
        return target.resolve().as_uri()


def get_storage() -> StorageBackend:
    """Build the backend selected by ``settings.storage_backend``."""
    if settings.storage_backend == "supabase":
        from disputai.data.supabase import SupabaseStorage
        return SupabaseStorage(access_token=settings.supabase_access_token or None)
    return Storage()
