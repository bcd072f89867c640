import asyncio
import json
import uuid
from pathlib import Path
from typing import Any, Optional

import typer
import uvicorn
from rich import print
from rich.markup import escape

from .analyzer import StrikeForCauseAnalyzer
from .artifacts import save_analysis_run, save_contract_error
from .config import AnalyzerConfig, load_config
from .errors import BackendContractError, BackendTransportError, ConfigurationError, RequestValidationError
from .log import configure_logging
from .models import StrikeForCauseRequest, StrikeForCauseResponse
from .prompts import render_user_message
from .server import create_app
from .validation import check_request, validate_response

app = typer.Typer()


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Voir dire strike-for-cause analyzer."""
    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit(code=0)


def _load_config() -> AnalyzerConfig:
    try:
        config = load_config()
    except ConfigurationError as exc:
        print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1)
    configure_logging(config.log_level, config.log_json)
    return config


def _read_json(file: Path) -> Any:
    if not file.exists():
        print("[red]File not found[/red]")
        raise typer.Exit(code=1)
    try:
        return json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"[red]Invalid JSON:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)


def _print_errors(errors: list[str]) -> None:
    for error in errors:
        print(f"- {escape(error)}")


def _handle_contract_error(exc: BackendContractError, request_id: str, runs_dir: str) -> None:
    failure_messages = {
        "missing_tool_call": "Model did not return a structured result",
        "schema_validation": "Model output didn't match the response schema",
        "turn_reference": "Model output cited turns that are not in the transcript",
    }
    message = failure_messages.get(exc.kind, "Model output validation failed")
    error_path = save_contract_error(exc, request_id, runs_dir=runs_dir)
    print(f"[red]{message}.[/red] Saved error artifact to [bold]{escape(error_path)}[/bold].")
    raise typer.Exit(code=1)


def _print_summary(request: StrikeForCauseRequest, response: StrikeForCauseResponse) -> None:
    target = request.target_juror
    position = f" (panel position {target.panel_position})" if target.panel_position is not None else ""
    print(
        f"[bold]{escape(target.juror_ref)}[/bold]{position} | {request.stage} | "
        f"{len(request.transcript)} transcript turns | {escape(request.matter.case_type)}\n"
    )

    summary = response.summary
    print("[bold]Likely cause candidates[/bold]")
    print(escape(", ".join(summary.likely_cause_candidates) or "none"))
    print("\n[bold]Likely peremptory only[/bold]")
    print(escape(", ".join(summary.likely_peremptory_only) or "none"))

    print("\n[bold]Analyses[/bold]")
    for analysis in response.analyses:
        print(
            f"- {escape(analysis.issue_id)} {escape(analysis.juror_ref)}: {escape(analysis.issue_type)} "
            f"| {analysis.status} | confidence {analysis.confidence}"
        )

    print("\n[bold]Immediate actions[/bold]")
    for i, action in enumerate(summary.immediate_actions[:5], 1):
        print(f"{i}. {escape(action)}")

    if response.warnings:
        print("\n[yellow][bold]Warnings[/bold][/yellow]")
        for warning in response.warnings:
            print(f"[yellow]- {warning.type}: {escape(warning.message)}[/yellow]")


@app.command()
def analyze(
    file: Path,
    request_id: Optional[str] = typer.Option(None, "--request-id", help="Correlation id (defaults to a new UUID)."),
    runs_dir: str = typer.Option("runs", "--runs-dir", help="Directory for run artifacts."),
):
    payload = _read_json(file)
    config = _load_config()
    resolved_id = request_id or str(uuid.uuid4())

    try:
        analyzer = StrikeForCauseAnalyzer.from_config(config)
        result = asyncio.run(analyzer.analyze(payload, resolved_id))
    except RequestValidationError as exc:
        print("[red]Invalid request.[/red]")
        _print_errors(exc.errors)
        raise typer.Exit(code=2)
    except ConfigurationError as exc:
        print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1)
    except BackendTransportError as exc:
        print(f"[red]AI service error (status {exc.status}).[/red] {escape(exc.message)}")
        raise typer.Exit(code=1)
    except BackendContractError as exc:
        _handle_contract_error(exc, resolved_id, runs_dir)

    paths = save_analysis_run(result.response, result.raw, runs_dir=runs_dir)
    print(f"Saved analysis to [bold]{escape(paths['response_path'])}[/bold]\n")
    _print_summary(
        StrikeForCauseRequest.model_validate(payload),
        StrikeForCauseResponse.model_validate(result.response),
    )


@app.command()
def validate(
    file: Path,
    kind: str = typer.Option("request", "--kind", help="Document kind: request or response."),
):
    normalized_kind = kind.lower()
    if normalized_kind not in {"request", "response"}:
        print("[red]Invalid kind. Use 'request' or 'response'.[/red]")
        raise typer.Exit(code=2)

    payload = _read_json(file)
    result = check_request(payload) if normalized_kind == "request" else validate_response(payload)
    if result.valid:
        print(f"[green]Valid {normalized_kind}.[/green]")
        return
    print(f"[red]{len(result.errors)} validation error(s):[/red]")
    _print_errors(result.errors)
    raise typer.Exit(code=1)


@app.command()
def prompt(file: Path):
    """Print the user message that would be sent for a request, without calling the model."""
    payload = _read_json(file)
    result = check_request(payload)
    if not result.valid:
        print("[red]Invalid request.[/red]")
        _print_errors(result.errors)
        raise typer.Exit(code=2)
    typer.echo(render_user_message(payload))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    config = _load_config()
    uvicorn.run(create_app(config=config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
