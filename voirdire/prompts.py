from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

SYSTEM_PROMPT_PATH = Path(__file__).parent / "templates" / "strike_for_cause_system.txt"

DEFAULT_QUESTION_COUNT = 8
DEFAULT_VERBOSITY = "standard"

REDACTION_NOTE = "Refer to jurors only by juror reference; do not repeat names or other identifiers."


@dataclass(frozen=True)
class RenderedPrompt:
    system_text: str
    user_text: str


def load_system_prompt(path: str | Path = SYSTEM_PROMPT_PATH) -> str:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"System prompt unreadable: {path}: {exc}") from exc
    if not text.strip():
        raise ConfigurationError(f"System prompt is empty: {path}")
    return text


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _render_turn(turn: dict[str, Any]) -> str:
    line = f"[{turn['turn_id']}] {turn['speaker_role']}"
    if turn.get("juror_ref"):
        line += f" ({turn['juror_ref']})"
    line += f": {turn['content']}"
    if turn.get("nonverbal"):
        line += f" [nonverbal: {turn['nonverbal']}]"
    confidence = turn.get("confidence")
    if confidence and confidence != "verbatim":
        line += f" [{confidence}]"
    return line


def render_user_message(request: dict[str, Any]) -> str:
    """Serialize a validated request into labeled sections in a fixed order."""
    jurisdiction = request["jurisdiction"]
    matter = request["matter"]
    target = request["target_juror"]
    parts: list[str] = []

    parts.append(f"## JURISDICTION\nState: {jurisdiction['state']}")
    if jurisdiction.get("county"):
        parts.append(f"County: {jurisdiction['county']}")
    if jurisdiction.get("court"):
        parts.append(f"Court: {jurisdiction['court']}")
    if jurisdiction.get("judge_profile"):
        parts.append(f"Judge Profile: {jurisdiction['judge_profile']}")

    parts.append(f"\n## MATTER\nCase Type: {matter['case_type']}")
    if matter.get("offense_level"):
        parts.append(f"Offense Level: {matter['offense_level']}")
    if matter.get("punishment_range_text"):
        parts.append(f"Punishment Range: {matter['punishment_range_text']}")
    if matter.get("key_legal_rules_in_play"):
        parts.append(f"Key Legal Rules: {'; '.join(matter['key_legal_rules_in_play'])}")
    if matter.get("prohibited_case_facts"):
        parts.append(f"PROHIBITED FACTS (do NOT reference): {'; '.join(matter['prohibited_case_facts'])}")

    parts.append(f"\n## STAGE\n{request['stage']}")

    parts.append(f"\n## TARGET JUROR\nJuror Ref: {target['juror_ref']}")
    if target.get("panel_position") is not None:
        parts.append(f"Panel Position: {target['panel_position']}")

    if request.get("analysis_focus"):
        parts.append(f"\n## ANALYSIS FOCUS\n{', '.join(request['analysis_focus'])}")

    parts.append("\n## TRANSCRIPT")
    parts.extend(_render_turn(turn) for turn in request["transcript"])

    prefs = request.get("output_preferences") or {}
    parts.append("\n## OUTPUT PREFERENCES")
    parts.append(f"Question count target: {prefs.get('question_count', DEFAULT_QUESTION_COUNT)}")
    parts.append(f"Include motion language: {_flag(prefs.get('include_motion_language') is not False)}")
    parts.append(f"Include preservation script: {_flag(prefs.get('include_preservation_script') is not False)}")
    if prefs.get("include_alternatives"):
        parts.append("Include alternative approaches")
    if prefs.get("include_panel_safe_version"):
        parts.append("Include panel-safe versions of individual questions")
    parts.append(f"Verbosity: {prefs.get('verbosity', DEFAULT_VERBOSITY)}")
    if (request.get("privacy") or {}).get("redact_juror_identifiers"):
        parts.append(REDACTION_NOTE)

    return "\n".join(parts)


def render(request: dict[str, Any], system_text: str) -> RenderedPrompt:
    if not system_text or not system_text.strip():
        raise ConfigurationError("System prompt is not loaded")
    return RenderedPrompt(system_text=system_text, user_text=render_user_message(request))
