import copy
from typing import Any

TOOL_NAME = "submit_strike_for_cause_analysis"
TOOL_DESCRIPTION = "Submit the complete strike-for-cause voir dire analysis as structured JSON."
CONTRACT_VERSION = "1.0.0"

# Envelope fields (request_id, model, version, jurisdiction, audit) are added by the analyzer.
PAYLOAD_FIELDS = ("summary", "analyses", "preservation", "warnings")


def build_tool_contract(response_schema: dict[str, Any]) -> dict[str, Any]:
    """Derive the forced-output tool definition from the response schema.

    The tool input schema is the response schema restricted to the payload
    fields, so the contract handed to the model and the schema the envelope is
    validated against always describe the same shape.
    """
    properties = response_schema["properties"]
    missing = [name for name in PAYLOAD_FIELDS if name not in properties]
    if missing:
        raise ValueError(f"response schema lacks payload fields: {', '.join(missing)}")
    return {
        "name": TOOL_NAME,
        "description": TOOL_DESCRIPTION,
        "input_schema": {
            "type": "object",
            "required": list(PAYLOAD_FIELDS),
            "properties": {name: copy.deepcopy(properties[name]) for name in PAYLOAD_FIELDS},
        },
    }


def tool_choice(contract: dict[str, Any]) -> dict[str, str]:
    return {"type": "tool", "name": contract["name"]}
