from dataclasses import dataclass
from typing import Any, Protocol

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from .contract import tool_choice
from .errors import BackendContractError, BackendTransportError, ConfigurationError

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 8192


@dataclass(frozen=True)
class BackendReply:
    """Provider-neutral copy of one model reply."""

    content: list[dict[str, Any]]
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None


class Backend(Protocol):
    async def invoke(self, system_text: str, user_text: str, contract: dict[str, Any]) -> BackendReply: ...


def resolve_client(client: Any | None = None, api_key: str | None = None, timeout: float | None = None) -> Any:
    if client is not None:
        return client
    if not api_key:
        raise ConfigurationError("Anthropic API key not configured. Add ANTHROPIC_API_KEY to the environment or .env")
    kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
    if timeout is not None:
        kwargs["timeout"] = timeout
    return AsyncAnthropic(**kwargs)


def _block_to_dict(block: Any) -> dict[str, Any]:
    if isinstance(block, dict):
        return dict(block)
    if hasattr(block, "model_dump"):
        return block.model_dump()
    return {key: value for key, value in vars(block).items() if not key.startswith("_")}


def reply_from_message(message: Any) -> BackendReply:
    usage = getattr(message, "usage", None)
    return BackendReply(
        content=[_block_to_dict(block) for block in message.content],
        model=message.model,
        input_tokens=getattr(usage, "input_tokens", 0) or 0,
        output_tokens=getattr(usage, "output_tokens", 0) or 0,
        stop_reason=getattr(message, "stop_reason", None),
    )


def extract_tool_input(reply: BackendReply, tool_name: str) -> dict[str, Any]:
    for block in reply.content:
        if block.get("type") != "tool_use" or block.get("name") != tool_name:
            continue
        if isinstance(block.get("input"), dict) and block["input"]:
            return block["input"]
    raise BackendContractError(
        kind="missing_tool_call",
        message="Model did not return a tool call result",
        raw={
            "content_types": [block.get("type") for block in reply.content],
            "stop_reason": reply.stop_reason,
        },
    )


class AnthropicBackend:
    """Single forced tool call against the Anthropic Messages API. Never retries."""

    def __init__(
        self,
        *,
        client: Any | None = None,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float | None = None,
    ):
        self._client = resolve_client(client=client, api_key=api_key, timeout=timeout)
        self.model = model
        self.max_tokens = max_tokens

    async def invoke(self, system_text: str, user_text: str, contract: dict[str, Any]) -> BackendReply:
        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.0,
                system=system_text,
                tools=[contract],
                tool_choice=tool_choice(contract),
                messages=[{"role": "user", "content": user_text}],
            )
        except APIStatusError as exc:
            raise BackendTransportError(
                f"Backend returned HTTP {exc.status_code}: {exc.message}",
                status=exc.status_code,
            ) from exc
        except APIConnectionError as exc:
            raise BackendTransportError(f"Backend unreachable: {exc}") from exc
        return reply_from_message(message)
