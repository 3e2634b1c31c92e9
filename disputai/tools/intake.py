"""Functions declared to the chat model during intake.

The wizard never lets the model execute these: a call is read as a signal
and handled by the controller. The bodies only matter when the tools are
run by a generic agent loop.
"""

from typing import Any

from langchain_core.tools import StructuredTool, tool

from disputai.agent.schema import submit_args_model, validate_fields

REQUEST_EVIDENCE = "request_evidence"
SUBMIT_DISPUTE = "submit_dispute"


@tool(REQUEST_EVIDENCE)
def request_evidence() -> str:
    """Ask the user to upload proof (receipts, bank statements, chat screenshots,
    tracking documents) once the dispute is understood."""
    return "Evidence upload requested."


def _submit_dispute(**fields: Any) -> dict[str, Any]:
    check = validate_fields(fields)
    return {
        "complete": check.complete,
        "missing": check.missing,
        "invalid": check.invalid,
    }


submit_dispute = StructuredTool.from_function(
    func=_submit_dispute,
    name=SUBMIT_DISPUTE,
    description=(
        "Collect dispute information from the user. Call only when every "
        "required field was explicitly given or confirmed by the user."
    ),
    args_schema=submit_args_model(),
)

INTAKE_TOOLS = [request_evidence, submit_dispute]
