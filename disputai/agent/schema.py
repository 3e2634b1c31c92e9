"""Declarative schema of the dispute fields.

The same list drives three things: the ``submit_dispute`` function
declaration sent to the chat model, the rules spelled out in the system
prompt, and the validation that runs before anything is written.
"""

import math
import re
from datetime import date
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, Field, ValidationError, create_model

from disputai.config import settings
from disputai.models.dispute import DisputeFields


class FieldSpec(BaseModel):
    """One dispute field."""

    name: str
    description: str
    type: Literal["string", "number"] = "string"
    required: bool = False
    enum: list[str] | None = None
    # (flag, value): the field becomes required when values[flag] == value
    required_when: tuple[str, str] | None = None


YES_NO = ["yes", "no"]

DISPUTE_SCHEMA: list[FieldSpec] = [
    FieldSpec(name="platform_name", description="Platform name (e.g., Amazon)", required=True),
    FieldSpec(name="purchase_date", description="Date of purchase (YYYY-MM-DD)", required=True),
    FieldSpec(name="purchase_amount", description="Amount spent", type="number", required=True),
    FieldSpec(name="currency", description="Currency used (e.g., USD, EUR)", required=True),
    FieldSpec(
        name="problem_type",
        description="Type of problem encountered, e.g. item_not_delivered, "
                    "subscription_auto_renewal or other",
        required=True,
    ),
    FieldSpec(name="problem_subtype", description="More specific problem category, if any"),
    FieldSpec(name="description", description="Description of the dispute in the user's words", required=True),
    FieldSpec(name="service_usage", description="Did the user use the service or product?", enum=YES_NO),
    FieldSpec(name="tracking_info", description="Shipment tracking number or link"),
    FieldSpec(name="country", description="Country where the purchase was made"),
    FieldSpec(
        name="user_contact_platform",
        description="Has the user already contacted the platform about this problem? "
                    "If yes, user_contact_desc must be collected; if no, do not ask for it.",
        enum=YES_NO,
        required=True,
    ),
    FieldSpec(
        name="user_contact_desc",
        description="What the user told the platform and how it answered",
        required_when=("user_contact_platform", "yes"),
    ),
    FieldSpec(
        name="training_permission",
        description="Always ask: 'May we anonymously use this dispute (without personal data) "
                    "to improve Disput.ai?'",
        enum=YES_NO,
        required=True,
    ),
]

SCHEMA_BY_NAME = {spec.name: spec for spec in DISPUTE_SCHEMA}

# Paged wizard steps; each problem type skips the steps that make no sense for it
BASE_FLOW = [
    "amount_currency",
    "platform",
    "purchase_date",
    "problem_type",
    "service_usage",
    "tracking_info",
    "country",
    "description",
    "disclaimer",
    "training_permission",
    "confirm",
]

QUESTION_FLOW_BY_TYPE = {
    "subscription_auto_renewal": [s for s in BASE_FLOW if s != "tracking_info"],
    "item_not_delivered": [s for s in BASE_FLOW if s != "service_usage"],
    "other": list(BASE_FLOW),
}

STEP_FIELDS = {
    "amount_currency": ("purchase_amount", "currency"),
    "platform": ("platform_name",),
    "purchase_date": ("purchase_date",),
    "problem_type": ("problem_type", "problem_subtype"),
    "service_usage": ("service_usage",),
    "tracking_info": ("tracking_info",),
    "country": ("country",),
    "description": ("description",),
    "training_permission": ("training_permission",),
}


def flow_for(problem_type: str | None) -> list[str]:
    return QUESTION_FLOW_BY_TYPE.get(problem_type or "", QUESTION_FLOW_BY_TYPE["other"])


def skipped_fields(problem_type: str | None) -> set[str]:
    """Fields whose wizard step is left out for this problem type."""
    flow = flow_for(problem_type)
    skipped = set()
    for step, names in STEP_FIELDS.items():
        if step not in flow:
            skipped.update(names)
    return skipped


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def required_fields(values: dict[str, Any]) -> list[str]:
    """Names of the fields required for these values, in schema order."""
    names = []
    for spec in DISPUTE_SCHEMA:
        if spec.required:
            names.append(spec.name)
        elif spec.required_when is not None:
            flag, trigger = spec.required_when
            if str(values.get(flag) or "").strip().lower() == trigger:
                names.append(spec.name)
    return names


def missing_fields(values: dict[str, Any]) -> list[str]:
    return [name for name in required_fields(values) if is_blank(values.get(name))]


class FieldCheck(NamedTuple):
    """Outcome of validating a candidate field mapping."""
    fields: DisputeFields | None
    missing: list[str]
    invalid: dict[str, str]

    @property
    def complete(self) -> bool:
        return self.fields is not None


# "12,50" or "12,5"; a comma before three digits is a thousands separator
_DECIMAL_COMMA = re.compile(r"^[+-]?\d+,\d{1,2}$")


def parse_amount(value: Any) -> float:
    """Read an amount written as a number, "12.50" or "12,50".

    Raises:
        ValueError: For grouped thousands ("1,299"), booleans and non-finite values
    """
    if isinstance(value, bool):
        raise ValueError(f"not an amount: {value!r}")
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        text = str(value).strip()
        if "," in text:
            if not _DECIMAL_COMMA.match(text):
                raise ValueError(f"ambiguous amount: {text!r}")
            text = text.replace(",", ".")
        amount = float(text)
    if not math.isfinite(amount):
        raise ValueError(f"not a finite amount: {value!r}")
    return amount


def _normalize(values: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    """Keep schema fields only, trim strings and coerce numbers and enums."""
    clean: dict[str, Any] = {}
    invalid: dict[str, str] = {}

    for name, value in values.items():
        spec = SCHEMA_BY_NAME.get(name)
        if spec is None or is_blank(value):
            continue
        if isinstance(value, str):
            value = value.strip()

        if spec.type == "number":
            try:
                value = parse_amount(value)
            except ValueError:
                invalid[name] = "must be a number"
                continue
        elif spec.enum is not None:
            value = str(value).lower()
            if value not in spec.enum:
                invalid[name] = f"must be one of {', '.join(spec.enum)}"
                continue
        else:
            value = str(value)
        clean[name] = value

    return clean, invalid


def validate_fields(values: dict[str, Any], today: date | None = None) -> FieldCheck:
    """Check a candidate mapping against the schema.

    Args:
        values: Field mapping proposed by the chat model
        today: Reference date for the "not in the future" rule

    Returns:
        FieldCheck whose ``fields`` is set only when nothing is missing or invalid
    """
    today = today or date.today()
    clean, invalid = _normalize(values)

    for name in skipped_fields(clean.get("problem_type")):
        clean.pop(name, None)
    if clean.get("user_contact_platform") == "no":
        clean.pop("user_contact_desc", None)

    amount = clean.get("purchase_amount")
    if amount is not None and amount <= 0:
        invalid["purchase_amount"] = "must be greater than zero"

    if "purchase_date" in clean:
        try:
            purchased = date.fromisoformat(clean["purchase_date"])
        except ValueError:
            invalid["purchase_date"] = "must be a date in YYYY-MM-DD format"
        else:
            if purchased > today:
                invalid["purchase_date"] = "cannot be in the future"

    min_length = settings.wizard_config.description_min_length
    if "description" in clean and len(clean["description"]) < min_length:
        invalid["description"] = f"must be at least {min_length} characters"

    if "currency" in clean:
        clean["currency"] = clean["currency"].upper()

    missing = [name for name in missing_fields(clean) if name not in invalid]
    if missing or invalid:
        return FieldCheck(None, missing, invalid)

    try:
        fields = DisputeFields(**clean)
    except ValidationError as e:
        return FieldCheck(None, [], {"fields": str(e)})
    return FieldCheck(fields, [], {})


def submit_args_model() -> type[BaseModel]:
    """Pydantic model of the ``submit_dispute`` arguments, built from the schema."""
    definitions: dict[str, Any] = {}
    for spec in DISPUTE_SCHEMA:
        py_type: Any = float if spec.type == "number" else str
        if spec.enum is not None:
            py_type = Literal[tuple(spec.enum)]
        if spec.required:
            definitions[spec.name] = (py_type, Field(description=spec.description))
        else:
            definitions[spec.name] = (py_type | None, Field(default=None, description=spec.description))
    return create_model("SubmitDisputeArgs", **definitions)


def describe_fields() -> str:
    """Bullet list of the fields and their rules for the system prompt."""
    lines = []
    for spec in DISPUTE_SCHEMA:
        if spec.required:
            rule = "required"
        elif spec.required_when is not None:
            rule = f"required when {spec.required_when[0]} is '{spec.required_when[1]}'"
        else:
            rule = "optional"
        options = f" (one of: {', '.join(spec.enum)})" if spec.enum else ""
        lines.append(f"- {spec.name} [{rule}]{options}: {spec.description}")
    return "\n".join(lines)
