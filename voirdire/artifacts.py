import json
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from .errors import BackendContractError


def make_timestamp() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    return f"{timestamp}_{os.getpid()}_{secrets.token_hex(3)}"


def ensure_runs_dir(path: str = "runs") -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def _atomic_write(path: Path, content: str) -> None:
    with NamedTemporaryFile("w", encoding="utf-8", dir=path.parent, delete=False) as tmp_file:
        tmp_file.write(content)
        tmp_path = Path(tmp_file.name)
    os.replace(tmp_path, path)


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def save_analysis_run(response: dict[str, Any], raw: dict[str, Any], runs_dir: str = "runs") -> dict[str, str]:
    ensure_runs_dir(runs_dir)
    ts = make_timestamp()

    response_path = Path(runs_dir) / f"analysis_{ts}.json"
    raw_path = Path(runs_dir) / f"analysis_raw_{ts}.json"

    _atomic_write(response_path, _dumps(response))
    _atomic_write(raw_path, _dumps(raw))

    return {
        "response_path": str(response_path),
        "raw_path": str(raw_path),
    }


def save_contract_error(exc: BackendContractError, request_id: str, runs_dir: str = "runs") -> str:
    ensure_runs_dir(runs_dir)
    ts = make_timestamp()
    err_path = Path(runs_dir) / f"contract_error_{ts}.txt"

    errors = "\n".join(f"- {error}" for error in exc.errors) or "- (none)"
    contents = (
        f"MODEL_OUTPUT_FAILURE\n"
        f"request_id: {request_id}\n"
        f"kind: {exc.kind}\n"
        f"state: {exc.state}\n"
        f"error: {exc.message}\n\n"
        f"---- VALIDATION ERRORS ----\n{errors}\n\n"
        f"---- RAW OUTPUT ----\n{_dumps(exc.raw)}"
    )
    _atomic_write(err_path, contents)
    return str(err_path)
