"""
Shared fixtures for the strike-for-cause analyzer tests.

Request fixtures are realistic Texas voir dire exchanges; the backend is a
counting stub so the tests exercise the protocol, not model quality.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from voirdire.analyzer import StrikeForCauseAnalyzer
from voirdire.contract import TOOL_NAME
from voirdire.llm import BackendReply
from voirdire.prompts import load_system_prompt
from voirdire.validation import SchemaStore

MODEL_ID = "claude-sonnet-4-20250514"


BURDEN_REQUEST: Dict[str, Any] = {
    "jurisdiction": {"state": "TX", "county": "Harris"},
    "matter": {
        "case_type": "Sexual Assault",
        "offense_level": "second_degree_felony",
        "punishment_range_text": "2 to 20 years TDC",
        "key_legal_rules_in_play": ["burden of proof", "sufficiency of evidence"],
    },
    "stage": "individual_followup",
    "transcript": [
        {
            "turn_id": "T1",
            "speaker_role": "prosecutor",
            "content": "Is there any particular type of evidence you would need to see before you could find someone guilty?",
        },
        {
            "turn_id": "T2",
            "speaker_role": "juror",
            "juror_ref": "Juror #7",
            "content": "I would need DNA or video evidence. I just don't think I could convict someone based on one person's word alone.",
            "nonverbal": "Arms crossed, shaking head",
        },
        {
            "turn_id": "T3",
            "speaker_role": "prosecutor",
            "content": "And if the judge instructed you that the law does not require any specific type of evidence?",
        },
        {
            "turn_id": "T4",
            "speaker_role": "juror",
            "juror_ref": "Juror #7",
            "content": "I hear you, but I just don't think I could do it. I'd need something more than just testimony.",
        },
    ],
    "target_juror": {"juror_ref": "Juror #7", "panel_position": 7},
    "analysis_focus": ["evidence_type_requirement", "burden_shifting"],
    "output_preferences": {
        "include_motion_language": True,
        "include_preservation_script": True,
        "response_format": "structured_json",
        "verbosity": "standard",
    },
    "privacy": {"redact_juror_identifiers": True, "allow_storage_for_training": False},
}

PROBATION_REQUEST: Dict[str, Any] = {
    "jurisdiction": {"state": "TX", "county": "Dallas"},
    "matter": {
        "case_type": "DWI",
        "offense_level": "misdemeanor_a",
        "punishment_range_text": "Up to 1 year in county jail and/or up to $4,000 fine; probation eligible",
        "key_legal_rules_in_play": ["full range of punishment", "probation eligibility"],
    },
    "stage": "individual_followup",
    "transcript": [
        {
            "turn_id": "T1",
            "speaker_role": "prosecutor",
            "content": "If you found the defendant guilty, could you consider the full range of punishment, including probation?",
        },
        {
            "turn_id": "T2",
            "speaker_role": "juror",
            "juror_ref": "Juror #3",
            "content": "No. I could never give probation for a DWI. Someone could get killed. They need to go to jail, period.",
        },
    ],
    "target_juror": {"juror_ref": "Juror #3", "panel_position": 3},
    "analysis_focus": ["full_range_punishment", "probation_refusal"],
}

FORMED_CONCLUSION_REQUEST: Dict[str, Any] = {
    "jurisdiction": {"state": "TX", "county": "Tarrant"},
    "matter": {
        "case_type": "Murder",
        "offense_level": "first_degree_felony",
        "punishment_range_text": "5 to 99 years or life TDC",
        "key_legal_rules_in_play": ["presumption of innocence", "formed conclusion"],
        "prohibited_case_facts": ["prior arrest of the defendant", "suppressed confession"],
    },
    "stage": "individual_lock_in",
    "transcript": [
        {"turn_id": "T1", "speaker_role": "prosecutor", "content": "Have you heard anything about this case in the news?"},
        {
            "turn_id": "T2",
            "speaker_role": "juror",
            "juror_ref": "Juror #5",
            "content": "Yes, I saw it on the news. I already think he's guilty based on what I saw.",
            "confidence": "paraphrase",
        },
        {
            "turn_id": "T3",
            "speaker_role": "judge",
            "content": "Could you set that aside and decide the case only on the evidence presented in court?",
        },
        {
            "turn_id": "T4",
            "speaker_role": "juror",
            "juror_ref": "Juror #5",
            "content": "I don't think so. I've already made up my mind about it.",
            "confidence": "verbatim",
        },
    ],
    "target_juror": {"juror_ref": "Juror #5", "panel_position": 5},
    "analysis_focus": ["formed_conclusion"],
    "output_preferences": {
        "question_count": 5,
        "include_alternatives": True,
        "include_motion_language": False,
        "include_panel_safe_version": True,
        "verbosity": "detailed",
    },
}

BURDEN_ANALYSIS: Dict[str, Any] = {
    "summary": {
        "likely_cause_candidates": ["Juror #7"],
        "likely_peremptory_only": [],
        "immediate_actions": ["Complete lock-in questioning for Juror #7 on evidence requirements"],
        "notes": "Juror requires DNA or video evidence; an (a)(9)/(b)(3) challenge is likely after a binary clarifier.",
    },
    "analyses": [
        {
            "issue_id": "issue-1",
            "juror_ref": "Juror #7",
            "issue_type": "Evidence Type Requirement / Burden Shifting",
            "status": "possible_cause_needs_lock_in",
            "evidence_summary": "Juror would require DNA or video evidence and could not convict on testimony alone, "
            "even after hearing the law does not require a specific type of evidence.",
            "key_admissions": [
                {"admission": "I would need DNA or video evidence.", "source_turn_id": "T2"},
                {"admission": "I just don't think I could do it.", "source_turn_id": "T4"},
            ],
            "legal_hooks": [
                {
                    "code": "Art. 35.16(b)(3)",
                    "rationale": "Bias against the law permitting conviction on the testimony of one witness.",
                }
            ],
            "ambiguity_flags": ["Juror said \"I don't think\" rather than \"I cannot\"; a binary clarifier is needed."],
            "question_plan": {
                "sequence_type": "record_building",
                "purpose": "Lock in the juror's inability to follow the law on evidence sufficiency",
                "questions": [
                    {
                        "step": "normalize",
                        "text": "A lot of people feel more comfortable with scientific evidence. Nothing wrong with that.",
                        "style": "individual",
                        "expected_signal": "Juror relaxes and agrees",
                    },
                    {
                        "step": "define_rule",
                        "text": "The law says the testimony of one witness can be sufficient. Do you understand that rule?",
                        "style": "individual",
                        "expected_signal": "Juror acknowledges the rule",
                    },
                    {
                        "step": "binary_clarifier",
                        "text": "Is your answer yes, you would still require DNA or video even if the judge instructs otherwise?",
                        "style": "individual",
                        "expected_signal": "Clear yes or no",
                        "if_hedge": "Repeat the clarifier once before moving on.",
                    },
                    {
                        "step": "cause_motion_line",
                        "text": "Your Honor, the State challenges Juror No. 7 for cause under Article 35.16(b)(3).",
                        "style": "bench",
                        "expected_signal": "Court rules on challenge",
                    },
                    {
                        "step": "preservation_line",
                        "text": "We object to the denial of our challenge for cause and ask that it be noted.",
                        "style": "bench",
                        "expected_signal": "Court notes objection",
                    },
                ],
                "stop_conditions": ["Juror clearly states they can convict on testimony alone."],
                "anti_commitment_check": "No question binds the juror to a verdict on specific facts.",
            },
            "motion_language": {
                "short_form": "Challenge Juror #7 for cause under Art. 35.16(b)(3).",
                "expanded_form": "The State challenges Juror Number 7 for cause under Article 35.16(b)(3).",
            },
            "confidence": "MEDIUM",
            "confidence_reasons": [
                "Strong statement in T2.",
                "Position reaffirmed in T4 after the rule was explained.",
                "Hedged language (\"I don't think\") leaves the record short of a lock-in.",
            ],
            "source_turn_refs": ["T2", "T4"],
        }
    ],
    "preservation": {
        "recommended": True,
        "lines": ["Your Honor, we object to the denial of our cause challenge to Juror No. 7."],
        "conditions": ["Use only if the cause challenge is denied."],
    },
    "warnings": [
        {
            "type": "missing_lock_in",
            "message": "Hedging language; use a binary clarifier before moving for cause.",
        }
    ],
}


def make_response(payload: Optional[Dict[str, Any]] = None, request_id: str = "test-uuid-1234") -> Dict[str, Any]:
    response = {
        "request_id": request_id,
        "model": MODEL_ID,
        "version": "1.0.0",
        "jurisdiction": "TX",
    }
    response.update(copy.deepcopy(payload if payload is not None else BURDEN_ANALYSIS))
    response["audit"] = {
        "input_tokens": 1200,
        "output_tokens": 800,
        "latency_ms": 3500,
        "model_version": MODEL_ID,
    }
    return response


def tool_reply(payload: Any, model: str = MODEL_ID, **kwargs: Any) -> BackendReply:
    return BackendReply(
        content=[{"type": "tool_use", "id": "toolu_01", "name": TOOL_NAME, "input": payload}],
        model=model,
        input_tokens=kwargs.get("input_tokens", 1200),
        output_tokens=kwargs.get("output_tokens", 800),
        stop_reason="tool_use",
    )


class StubBackend:
    """Deterministic backend that records every invocation."""

    def __init__(self, reply: Optional[BackendReply] = None, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def invoke(self, system_text: str, user_text: str, contract: Dict[str, Any]) -> BackendReply:
        self.calls.append({"system_text": system_text, "user_text": user_text, "contract": contract})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def burden_request():
    return copy.deepcopy(BURDEN_REQUEST)


@pytest.fixture
def probation_request():
    return copy.deepcopy(PROBATION_REQUEST)


@pytest.fixture
def formed_conclusion_request():
    return copy.deepcopy(FORMED_CONCLUSION_REQUEST)


@pytest.fixture
def burden_analysis():
    return copy.deepcopy(BURDEN_ANALYSIS)


@pytest.fixture
def valid_response():
    return make_response()


@pytest.fixture(scope="session")
def schema_store():
    return SchemaStore().warm()


@pytest.fixture(scope="session")
def system_prompt():
    return load_system_prompt()


@pytest.fixture
def make_analyzer(schema_store, system_prompt):
    """Build an analyzer around a stub backend; returns (analyzer, backend)."""

    def _make(reply=None, error=None, enforce_turn_refs=True):
        backend = StubBackend(reply=reply, error=error)
        analyzer = StrikeForCauseAnalyzer(
            backend,
            system_prompt,
            schema_store,
            enforce_turn_refs=enforce_turn_refs,
        )
        return analyzer, backend

    return _make
