"""Dispute record models."""

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

YesNo = Literal["yes", "no"]
DisputeStatus = Literal["draft", "open", "won", "lost"]


class DisputeFields(BaseModel):
    """Claim fields collected by the intake wizard."""

    platform_name: str | None = Field(default=None, description="Platform name (e.g., Amazon)")
    purchase_date: str | None = Field(default=None, description="Date of purchase (YYYY-MM-DD)")
    purchase_amount: float | None = Field(default=None, description="Amount spent")
    currency: str | None = Field(default=None, description="Currency used (e.g., USD, EUR)")
    problem_type: str | None = Field(default=None, description="Type of problem encountered")
    problem_subtype: str | None = Field(default=None, description="More specific problem category")
    description: str | None = Field(default=None, description="Description of the dispute")
    service_usage: YesNo | None = Field(default=None, description="Whether the service was used")
    tracking_info: str | None = Field(default=None, description="Shipment tracking number or link")
    country: str | None = Field(default=None, description="Country where the purchase was made")
    user_contact_platform: YesNo | None = Field(
        default=None, description="Whether the user already contacted the platform"
    )
    user_contact_desc: str | None = Field(
        default=None, description="What happened when the user contacted the platform"
    )
    training_permission: YesNo | None = Field(
        default=None, description="Consent to anonymous use for improving the service"
    )


class DisputeRecord(DisputeFields):
    """A persisted dispute."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Unique dispute ID")
    user_id: str = Field(description="User who filed the dispute")
    created_at: datetime = Field(
        default_factory=datetime.now, description="When the dispute was created"
    )
    status: DisputeStatus = Field(default="draft", description="Current dispute status")
    user_confirmed_input: bool = Field(
        default=False, description="The user explicitly confirmed the collected fields"
    )
    archived: bool = Field(default=False, description="Hidden from the active list")
    jurisdiction_flag: str = Field(default="unknown", description="Country code at filing time")
    user_plan: str = Field(default="free", description="Subscription plan at filing time")
    used_in_contest: bool = Field(
        default=False, description="Already submitted to the platform; cannot be deleted"
    )
    template_text: str | None = Field(default=None, description="Drafted dispute letter")
    pdf_url: str | None = Field(default=None, description="Location of the exported PDF")

    def to_display_dict(self) -> dict:
        """Return a dictionary suitable for display."""
        amount = (
            f"{self.currency or ''} {self.purchase_amount:.2f}".strip()
            if self.purchase_amount is not None else "N/A"
        )
        description = self.description or ""
        return {
            "id": self.id,
            "platform": self.platform_name or "N/A",
            "amount": amount,
            "purchase_date": self.purchase_date or "N/A",
            "problem_type": self.problem_type or "N/A",
            "status": self.status,
            "archived": self.archived,
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M"),
            "description": description[:100] + "..." if len(description) > 100 else description,
        }


class DisputeLogEntry(BaseModel):
    """One archive, restore or delete action on a dispute."""

    dispute_id: str
    user_id: str
    action: Literal["archived", "restored", "deleted"]
    created_at: datetime = Field(default_factory=datetime.now)
