"""Evidence and proof bundle models."""

from datetime import datetime
from typing import Literal, NamedTuple
from uuid import uuid4

from pydantic import BaseModel, Field

EVIDENCE_TYPES = {
    "receipt": "Receipt / Invoice",
    "bank_statement": "Bank statement",
    "chat_screenshot": "Chat screenshot",
    "tracking_doc": "Tracking / shipping doc",
    "other": "Other",
}


class EvidenceFile(NamedTuple):
    """A file the user selected for upload."""
    name: str
    data: bytes
    content_type: str = "application/octet-stream"


class EvidenceItem(BaseModel):
    """An uploaded file and where it is stored."""

    name: str = Field(description="Original file name")
    url: str = Field(description="Durable public location")


class UploadOutcome(BaseModel):
    """Result of storing one selected file."""

    name: str
    item: EvidenceItem | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.item is not None


class ProofBundleRecord(BaseModel):
    """Evidence attached to a dispute: one primary file plus secondary files."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique bundle ID")
    user_id: str
    dispute_id: str
    receipt_url: str = Field(description="Primary evidence location")
    screenshot_urls: list[str] = Field(default_factory=list, description="Secondary locations")
    evidence_source: Literal["user_upload"] = "user_upload"
    dispute_type: str | None = Field(default=None, description="Evidence classification")
    user_description: str | None = Field(default=None, description="User notes on the evidence")
    policy_snapshot: dict | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def urls(self) -> list[str]:
        return [self.receipt_url, *self.screenshot_urls]
