"""Supabase backend: PostgREST tables, Storage buckets and GoTrue identity."""

from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from disputai.config import settings
from disputai.errors import StorageError
from disputai.models.dispute import DisputeLogEntry, DisputeRecord
from disputai.models.evidence import ProofBundleRecord
from disputai.utils.logging import get_logger

logger = get_logger("supabase", settings.log_level)

DISPUTES_TABLE = "disputes"
PROOF_BUNDLE_TABLE = "proof_bundle"
DISPUTE_LOGS_TABLE = "dispute_logs"


class SupabaseStorage:
    """Talks to a Supabase project over its REST endpoints.

    ``access_token`` is the logged-in user's JWT; without it requests are
    made with the project key, which row level security may restrict.
    """

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        access_token: str | None = None,
        client: httpx.Client | None = None,
    ):
        self.url = (url or settings.supabase_url).rstrip("/")
        self.key = key or settings.supabase_key
        if not self.url or not self.key:
            raise ValueError(
                "Supabase URL and key are required. "
                "Set SUPABASE_URL and SUPABASE_KEY in .env."
            )
        self.access_token = access_token
        self.client = client or httpx.Client()

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.access_token or self.key}",
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, f"{self.url}{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase {method} {path} failed: {e}") from e
        return response

    def _rows(self, response: httpx.Response) -> list[dict[str, Any]]:
        """Decode a PostgREST body that must be a list of row objects."""
        try:
            rows = response.json()
        except ValueError as e:
            raise StorageError(f"Supabase returned a non-JSON body: {e}") from e
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise StorageError(f"Supabase returned {type(rows).__name__} where rows were expected")
        return rows

    def _insert(self, table: str, payload: dict[str, Any]) -> str:
        response = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=payload,
            headers=self._headers(Prefer="return=representation"),
        )
        rows = self._rows(response)
        if not rows or not rows[0].get("id"):
            raise StorageError(f"Supabase insert into {table} returned no id")
        return str(rows[0]["id"])

    def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = self._request(
            "GET", f"/rest/v1/{table}", params={"select": "*", **params}, headers=self._headers()
        )
        return self._rows(response)

    # Records

    def insert_dispute(self, payload: dict[str, Any]) -> str:
        return self._insert(DISPUTES_TABLE, payload)

    def insert_proof_bundle(self, payload: dict[str, Any]) -> str:
        return self._insert(PROOF_BUNDLE_TABLE, payload)

    def get_dispute(self, dispute_id: str, user_id: str) -> DisputeRecord | None:
        rows = self._select(DISPUTES_TABLE, {"id": f"eq.{dispute_id}", "user_id": f"eq.{user_id}"})
        if not rows:
            return None
        try:
            return DisputeRecord.model_validate(rows[0])
        except ValidationError as e:
            raise StorageError(f"Unexpected dispute row: {e}") from e

    def list_disputes(self, user_id: str, archived: bool | None = None) -> list[DisputeRecord]:
        params = {"user_id": f"eq.{user_id}", "order": "created_at.desc"}
        if archived is not None:
            params["archived"] = f"is.{str(archived).lower()}"
        rows = self._select(DISPUTES_TABLE, params)
        try:
            return [DisputeRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            raise StorageError(f"Unexpected dispute row: {e}") from e

    def update_dispute(self, dispute_id: str, user_id: str, changes: dict[str, Any]) -> bool:
        response = self._request(
            "PATCH",
            f"/rest/v1/{DISPUTES_TABLE}",
            params={"id": f"eq.{dispute_id}", "user_id": f"eq.{user_id}"},
            json=changes,
            headers=self._headers(Prefer="return=representation"),
        )
        return bool(self._rows(response))

    def delete_dispute(self, dispute_id: str, user_id: str) -> bool:
        response = self._request(
            "DELETE",
            f"/rest/v1/{DISPUTES_TABLE}",
            params={"id": f"eq.{dispute_id}", "user_id": f"eq.{user_id}"},
            headers=self._headers(Prefer="return=representation"),
        )
        return bool(self._rows(response))

    def get_proof_bundles(self, dispute_id: str, user_id: str) -> list[ProofBundleRecord]:
        rows = self._select(
            PROOF_BUNDLE_TABLE,
            {"dispute_id": f"eq.{dispute_id}", "user_id": f"eq.{user_id}", "order": "created_at.asc"},
        )
        try:
            return [ProofBundleRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            raise StorageError(f"Unexpected proof bundle row: {e}") from e

    def insert_dispute_log(self, entry: DisputeLogEntry) -> None:
        self._request(
            "POST",
            f"/rest/v1/{DISPUTE_LOGS_TABLE}",
            json=entry.model_dump(mode="json"),
            headers=self._headers(),
        )

    # Objects

    def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        object_path = quote(path)
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{object_path}",
            content=data,
            headers=self._headers(**{"Content-Type": content_type}),
        )
        return f"{self.url}/storage/v1/object/public/{bucket}/{object_path}"

    # Identity

    def get_user_id(self, access_token: str) -> str | None:
        """Resolve an access token to the user's ID, or None if it is not valid."""
        try:
            response = self.client.get(
                f"{self.url}/auth/v1/user",
                headers={"apikey": self.key, "Authorization": f"Bearer {access_token}"},
            )
            if response.status_code in (401, 403):
                logger.warning("Access token rejected by Supabase auth")
                return None
            response.raise_for_status()
            user = response.json()
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase auth lookup failed: {e}") from e
        except ValueError as e:
            raise StorageError(f"Supabase auth returned a non-JSON body: {e}") from e
        return user.get("id") if isinstance(user, dict) else None
