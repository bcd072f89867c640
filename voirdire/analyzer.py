import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from .config import AnalyzerConfig
from .contract import CONTRACT_VERSION, PAYLOAD_FIELDS, build_tool_contract
from .errors import (
    AnalyzerFailure,
    BackendContractError,
    BackendTransportError,
    ConfigurationError,
    RequestValidationError,
)
from .llm import AnthropicBackend, Backend, BackendReply, extract_tool_input
from .prompts import load_system_prompt, render
from .validation import RESPONSE_SCHEMA, SchemaStore, check_request, dangling_turn_refs, validate_response

logger = structlog.get_logger(__name__)


class AnalysisState(str, Enum):
    RECEIVED = "received"
    REQUEST_VALIDATED = "request_validated"
    PROMPT_BUILT = "prompt_built"
    BACKEND_INVOKED = "backend_invoked"
    RESULT_EXTRACTED = "result_extracted"
    RESPONSE_ASSEMBLED = "response_assembled"
    RESPONSE_VALIDATED = "response_validated"
    DONE = "done"


@dataclass(frozen=True)
class AnalysisResult:
    response: dict[str, Any]
    raw: dict[str, Any]


def assemble_response(
    request_id: str,
    request: dict[str, Any],
    payload: dict[str, Any],
    reply: BackendReply,
    latency_ms: int,
) -> dict[str, Any]:
    response: dict[str, Any] = {
        "request_id": request_id,
        "model": reply.model,
        "version": CONTRACT_VERSION,
        "jurisdiction": request["jurisdiction"]["state"],
    }
    for name in PAYLOAD_FIELDS:
        if name in payload:
            response[name] = payload[name]
    response["audit"] = {
        "input_tokens": reply.input_tokens,
        "output_tokens": reply.output_tokens,
        "latency_ms": latency_ms,
        "model_version": reply.model,
    }
    return response


class StrikeForCauseAnalyzer:
    """Validates a request, forces one structured model answer and validates the result.

    A run makes at most one backend call and ends either with a validated
    response envelope or with one of the ``AnalyzerFailure`` subclasses. Nothing
    is retried here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        backend: Backend,
        system_prompt: str,
        schemas: SchemaStore | None = None,
        *,
        enforce_turn_refs: bool = True,
    ):
        self.backend = backend
        self.system_prompt = system_prompt
        self.schemas = (schemas or SchemaStore()).warm()
        self.contract = build_tool_contract(self.schemas.schema(RESPONSE_SCHEMA))
        self.enforce_turn_refs = enforce_turn_refs

    @classmethod
    def from_config(cls, config: AnalyzerConfig, backend: Backend | None = None) -> "StrikeForCauseAnalyzer":
        schemas = SchemaStore(config.schema_dir).warm()
        system_prompt = load_system_prompt(config.system_prompt_path)
        if backend is None:
            backend = AnthropicBackend(
                api_key=config.require_api_key(),
                model=config.model,
                max_tokens=config.max_tokens,
                timeout=config.timeout_seconds,
            )
        return cls(backend, system_prompt, schemas, enforce_turn_refs=config.enforce_turn_refs)

    async def analyze(self, payload: Any, request_id: str) -> AnalysisResult:
        log = logger.bind(request_id=request_id)
        state = AnalysisState.RECEIVED
        try:
            check = check_request(payload, self.schemas)
            if not check.valid:
                raise RequestValidationError(check.errors)
            state = self._advance(log, AnalysisState.REQUEST_VALIDATED)

            prompt = render(payload, self.system_prompt)
            state = self._advance(log, AnalysisState.PROMPT_BUILT)

            started = time.perf_counter()
            reply = await self.backend.invoke(prompt.system_text, prompt.user_text, self.contract)
            latency_ms = int((time.perf_counter() - started) * 1000)
            state = self._advance(log, AnalysisState.BACKEND_INVOKED)

            raw = extract_tool_input(reply, self.contract["name"])
            state = self._advance(log, AnalysisState.RESULT_EXTRACTED)

            response = assemble_response(request_id, payload, raw, reply, latency_ms)
            state = self._advance(log, AnalysisState.RESPONSE_ASSEMBLED)

            self._check_response(payload, raw, response)
            state = self._advance(log, AnalysisState.RESPONSE_VALIDATED)
        except AnalyzerFailure as exc:
            if exc.state is None:
                exc.state = state.value
            self._log_failure(log, exc)
            raise

        self._advance(log, AnalysisState.DONE)
        log.info(
            "analysis_complete",
            analyses=len(response["analyses"]),
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            latency_ms=latency_ms,
        )
        return AnalysisResult(response=response, raw=raw)

    def _check_response(self, request: dict[str, Any], raw: dict[str, Any], response: dict[str, Any]) -> None:
        result = validate_response(response, self.schemas)
        if not result.valid:
            raise BackendContractError(
                kind="schema_validation",
                message="Model output did not pass schema validation",
                errors=result.errors,
                raw=raw,
            )
        if not self.enforce_turn_refs:
            return
        dangling = dangling_turn_refs(request, raw)
        if dangling:
            raise BackendContractError(
                kind="turn_reference",
                message="Model output cites turns absent from the transcript",
                errors=dangling,
                raw=raw,
            )

    @staticmethod
    def _advance(log: Any, state: AnalysisState) -> AnalysisState:
        log.debug("analysis_state", state=state.value)
        return state

    @staticmethod
    def _log_failure(log: Any, exc: AnalyzerFailure) -> None:
        if isinstance(exc, RequestValidationError):
            log.info("request_rejected", state=exc.state, error_count=len(exc.errors))
        elif isinstance(exc, BackendContractError):
            if exc.kind == "missing_tool_call":
                shape = {"reply_shape": exc.raw}
            else:
                shape = {"payload_keys": sorted(exc.raw) if isinstance(exc.raw, dict) else None}
            log.error("backend_contract_violation", state=exc.state, kind=exc.kind, errors=exc.errors, **shape)
        elif isinstance(exc, BackendTransportError):
            log.error("backend_transport_failure", state=exc.state, status=exc.status, error=exc.message)
        elif isinstance(exc, ConfigurationError):
            log.error("configuration_error", state=exc.state, error=exc.message)
