from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Typed views over the JSON Schema documents in schemas/. Runtime validation of
# untrusted input always goes through validation.py; these models give callers
# attribute access to payloads that already passed it.

Stage = Literal[
    "group_screen",
    "individual_followup",
    "individual_lock_in",
    "cause_motion",
    "denied_cause_preservation",
]
SpeakerRole = Literal["prosecutor", "defense_counsel", "judge", "juror", "observer"]
TurnConfidence = Literal["verbatim", "paraphrase", "summary"]
Verbosity = Literal["concise", "standard", "detailed"]
IssueStatus = Literal[
    "strong_cause_candidate",
    "possible_cause_needs_lock_in",
    "insufficient_for_cause_peremptory_only",
    "hardship_excuse_path",
    "disqualification_admin_path",
]
WorkflowStep = Literal[
    "normalize",
    "define_rule",
    "confirm_understanding",
    "elicit_conflict",
    "lock_in_override",
    "binary_clarifier",
    "cause_motion_line",
    "preservation_line",
]
QuestionStyle = Literal["panel_safe", "individual", "bench"]
Confidence = Literal["HIGH", "MEDIUM", "LOW"]
WarningType = Literal[
    "commitment_question_risk",
    "insufficient_record",
    "hardship_not_cause",
    "confirmatory_fairness_question",
    "batson_risk",
    "rehabilitation_vulnerability",
    "missing_lock_in",
    "nonverbal_only",
]


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


class Jurisdiction(_Section):
    state: Literal["TX"]
    county: Optional[str] = None
    court: Optional[str] = None
    judge_profile: Optional[str] = None


class Matter(_Section):
    case_type: str = Field(..., min_length=1)
    offense_level: Optional[str] = None
    punishment_range_text: Optional[str] = None
    key_legal_rules_in_play: List[str] = Field(default_factory=list)
    prohibited_case_facts: List[str] = Field(default_factory=list)


class TranscriptTurn(_Section):
    turn_id: str = Field(..., min_length=1)
    speaker_role: SpeakerRole
    content: str
    juror_ref: Optional[str] = None
    timestamp: Optional[str] = None
    source: Optional[str] = None
    nonverbal: Optional[str] = None
    confidence: Optional[TurnConfidence] = None


class TargetJuror(_Section):
    juror_ref: str = Field(..., min_length=1)
    panel_position: Optional[int] = Field(default=None, ge=1)


class OutputPreferences(_Section):
    question_count: Optional[int] = Field(default=None, ge=1, le=20)
    include_alternatives: Optional[bool] = None
    include_motion_language: Optional[bool] = None
    include_preservation_script: Optional[bool] = None
    include_panel_safe_version: Optional[bool] = None
    response_format: Optional[Literal["structured_json"]] = None
    verbosity: Optional[Verbosity] = None


class Privacy(_Section):
    redact_juror_identifiers: Optional[bool] = None
    allow_storage_for_training: Optional[Literal[False]] = None
    retention_days: Optional[int] = Field(default=None, ge=0)


class StrikeForCauseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    jurisdiction: Jurisdiction
    matter: Matter
    stage: Stage
    transcript: List[TranscriptTurn] = Field(..., min_length=1)
    target_juror: TargetJuror
    analysis_focus: Optional[List[str]] = None
    output_preferences: Optional[OutputPreferences] = None
    privacy: Optional[Privacy] = None
    metadata: Optional[dict[str, Any]] = None


class Summary(_Section):
    likely_cause_candidates: List[str]
    likely_peremptory_only: List[str]
    immediate_actions: List[str]
    notes: str


class KeyAdmission(_Section):
    admission: str
    source_turn_id: str


class LegalHook(_Section):
    code: str
    rationale: str


class PlannedQuestion(_Section):
    step: WorkflowStep
    text: str
    style: QuestionStyle
    expected_signal: str
    if_yes: Optional[str] = None
    if_no: Optional[str] = None
    if_hedge: Optional[str] = None


class QuestionPlan(_Section):
    sequence_type: str
    purpose: str
    questions: List[PlannedQuestion]
    stop_conditions: Optional[List[str]] = None
    anti_commitment_check: Optional[str] = None


class MotionLanguage(_Section):
    short_form: Optional[str] = None
    expanded_form: Optional[str] = None


class AlternativeQuestion(_Section):
    step: str
    text: str


class Alternative(_Section):
    approach: Optional[str] = None
    questions: Optional[List[AlternativeQuestion]] = None


class Analysis(_Section):
    issue_id: str = Field(..., min_length=1)
    juror_ref: str
    issue_type: str
    status: IssueStatus
    evidence_summary: str
    key_admissions: List[KeyAdmission]
    legal_hooks: List[LegalHook]
    ambiguity_flags: List[str]
    question_plan: QuestionPlan
    motion_language: Optional[MotionLanguage] = None
    alternatives: Optional[List[Alternative]] = None
    confidence: Confidence
    confidence_reasons: List[str]
    source_turn_refs: List[str]


class Preservation(_Section):
    recommended: bool
    lines: List[str]
    conditions: List[str]


class AnalysisWarning(_Section):
    type: WarningType
    message: str


class Audit(_Section):
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    latency_ms: int = Field(..., ge=0)
    model_version: str


class StrikeForCauseResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    request_id: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    version: Literal["1.0.0"]
    jurisdiction: Literal["TX"]
    summary: Summary
    analyses: List[Analysis]
    preservation: Preservation
    warnings: List[AnalysisWarning]
    audit: Optional[Audit] = None
