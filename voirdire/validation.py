import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from jsonschema import validators
from jsonschema.exceptions import SchemaError

from .errors import ConfigurationError

SCHEMA_DIR = Path(__file__).parent / "schemas"
REQUEST_SCHEMA = "strike_for_cause_request.schema.json"
RESPONSE_SCHEMA = "strike_for_cause_response.schema.json"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


class SchemaStore:
    """JSON schema loader that compiles each document once and reuses it."""

    def __init__(self, base_dir: Path = SCHEMA_DIR) -> None:
        self._base_dir = Path(base_dir)
        self._documents: dict[str, dict[str, Any]] = {}
        self._cache: dict[str, Any] = {}

    def schema(self, name: str) -> dict[str, Any]:
        if name in self._documents:
            return self._documents[name]
        path = self._base_dir / name
        if not path.exists():
            raise ConfigurationError(f"Schema not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Schema unreadable: {path}: {exc}") from exc
        self._documents[name] = document
        return document

    def validator(self, name: str) -> Any:
        if name in self._cache:
            return self._cache[name]
        schema = self.schema(name)
        validator_cls = validators.validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except SchemaError as exc:
            raise ConfigurationError(f"Schema {name} is not a valid JSON Schema: {exc.message}") from exc
        validator = validator_cls(schema)
        self._cache[name] = validator
        return validator

    def warm(self, names: Iterable[str] = (REQUEST_SCHEMA, RESPONSE_SCHEMA)) -> "SchemaStore":
        for name in names:
            self.validator(name)
        return self


_DEFAULT_STORE = SchemaStore()


def _escape_pointer_segment(segment: Any) -> str:
    return str(segment).replace("~", "~0").replace("/", "~1")


def json_pointer(path: Iterable[Any]) -> str:
    tokens = [_escape_pointer_segment(token) for token in path]
    if not tokens:
        return "/"
    return "/" + "/".join(tokens)


def validate(validator: Any, value: Any) -> ValidationResult:
    errors = sorted(
        validator.iter_errors(value),
        key=lambda error: ([str(token) for token in error.absolute_path], error.message),
    )
    if not errors:
        return ValidationResult(valid=True, errors=[])
    return ValidationResult(
        valid=False,
        errors=[f"{json_pointer(error.absolute_path)} {error.message}" for error in errors],
    )


def validate_request(value: Any, store: SchemaStore | None = None) -> ValidationResult:
    return validate((store or _DEFAULT_STORE).validator(REQUEST_SCHEMA), value)


def validate_response(value: Any, store: SchemaStore | None = None) -> ValidationResult:
    return validate((store or _DEFAULT_STORE).validator(RESPONSE_SCHEMA), value)


def duplicate_turn_ids(request: dict[str, Any]) -> list[str]:
    turn_ids = [
        turn["turn_id"]
        for turn in request.get("transcript", [])
        if isinstance(turn, dict) and isinstance(turn.get("turn_id"), str)
    ]
    counts = Counter(turn_ids)
    return [f"/transcript duplicate turn_id: {turn_id}" for turn_id, count in counts.items() if count > 1]


def dangling_turn_refs(request: dict[str, Any], payload: dict[str, Any]) -> list[str]:
    """Turn citations in an analysis payload that name no turn of the request transcript."""
    known = {turn["turn_id"] for turn in request["transcript"]}
    errors: list[str] = []
    for i, analysis in enumerate(payload.get("analyses", [])):
        for j, ref in enumerate(analysis.get("source_turn_refs", [])):
            if ref not in known:
                errors.append(f"/analyses/{i}/source_turn_refs/{j} unknown turn_id: {ref}")
        for j, admission in enumerate(analysis.get("key_admissions", [])):
            ref = admission.get("source_turn_id")
            if ref not in known:
                errors.append(f"/analyses/{i}/key_admissions/{j}/source_turn_id unknown turn_id: {ref}")
    return errors


def check_request(value: Any, store: SchemaStore | None = None) -> ValidationResult:
    """Schema validation plus the transcript uniqueness check, reported together."""
    errors = list(validate_request(value, store).errors)
    if isinstance(value, dict) and isinstance(value.get("transcript"), list):
        errors.extend(duplicate_turn_ids(value))
    return ValidationResult(valid=not errors, errors=errors)
