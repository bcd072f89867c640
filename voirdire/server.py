"""HTTP boundary for the strike-for-cause analyzer.

Authenticates the caller, assigns the correlation id, parses the body and maps
analyzer failures to status codes. Only request metadata (stage and juror
reference) is logged here; transcript content never is.
"""

import json
import secrets
import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .analyzer import StrikeForCauseAnalyzer
from .config import AnalyzerConfig, load_config
from .contract import CONTRACT_VERSION
from .errors import (
    AnalyzerFailure,
    BackendContractError,
    BackendTransportError,
    ConfigurationError,
    RequestValidationError,
    status_code_for,
)

logger = structlog.get_logger(__name__)

ANALYZE_PATH = "/api/voir-dire/strike-for-cause/analyze"
HEALTH_PATH = "/api/health"


def _authorized(credentials: HTTPAuthorizationCredentials | None, api_tokens: tuple[str, ...]) -> bool:
    if credentials is None or not credentials.credentials:
        return False
    token = credentials.credentials.encode("utf-8")
    return any(secrets.compare_digest(token, allowed.encode("utf-8")) for allowed in api_tokens)


def _request_metadata(body: Any) -> dict[str, str]:
    if not isinstance(body, dict):
        return {"juror_ref": "unknown", "stage": "unknown"}
    target = body.get("target_juror")
    juror_ref = target.get("juror_ref") if isinstance(target, dict) else None
    return {"juror_ref": str(juror_ref or "unknown"), "stage": str(body.get("stage") or "unknown")}


def _failure_response(log: Any, exc: AnalyzerFailure, request_id: str) -> JSONResponse:
    body: dict[str, Any] = {"error": exc.public_message, "request_id": request_id}
    if isinstance(exc, RequestValidationError):
        log.warning("validation_error", errors=exc.errors)
        body["details"] = exc.errors
    elif isinstance(exc, BackendContractError):
        log.error("analyzer_error", kind=exc.kind, error=exc.message)
    elif isinstance(exc, BackendTransportError):
        log.error("api_error", status=exc.status, error=exc.message)
    elif isinstance(exc, ConfigurationError):
        log.error("configuration_error", error=exc.message)
    return JSONResponse(body, status_code=status_code_for(exc))


def create_app(analyzer: StrikeForCauseAnalyzer | None = None, config: AnalyzerConfig | None = None) -> FastAPI:
    if config is None:
        config = load_config()
    bearer = HTTPBearer(auto_error=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not config.api_tokens:
            logger.warning("no_api_tokens_configured", hint="set VOIRDIRE_API_TOKENS; all analyze calls will be rejected")
        if app.state.analyzer is None:
            try:
                app.state.analyzer = StrikeForCauseAnalyzer.from_config(config)
            except ConfigurationError as exc:
                app.state.startup_message = exc.message
                logger.error("analyzer_unavailable", error=exc.message)
        yield

    app = FastAPI(title="voirdire", version=CONTRACT_VERSION, lifespan=lifespan)
    app.state.analyzer = analyzer
    app.state.startup_message = None

    @app.get(HEALTH_PATH)
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": CONTRACT_VERSION}

    @app.post(ANALYZE_PATH)
    async def analyze(
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> JSONResponse:
        request_id = str(uuid.uuid4())
        if not _authorized(credentials, config.api_tokens):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            body = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse({"error": "Invalid JSON body", "request_id": request_id}, status_code=400)

        log = logger.bind(request_id=request_id)
        log.info("strike_for_cause_request", **_request_metadata(body))

        try:
            current = request.app.state.analyzer
            if current is None:
                raise ConfigurationError(request.app.state.startup_message or "Analyzer is not configured")
            result = await current.analyze(body, request_id)
        except AnalyzerFailure as exc:
            return _failure_response(log, exc, request_id)
        except Exception:
            log.exception("unexpected_error")
            return JSONResponse({"error": "An unexpected error occurred", "request_id": request_id}, status_code=500)

        return JSONResponse(result.response)

    return app
