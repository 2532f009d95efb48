"""
Chat translator
---------------

Turns an OpenAI-shaped chat request into a request for the NVIDIA NIM
`/chat/completions` endpoint and turns the NIM answer back into an OpenAI
chat-completion envelope.

Pipeline (one outbound call, no retries):

    Validate -> Resolve -> Shape -> Invoke -> Extract -> Compose

Each stage either hands its result to the next or raises a `ProxyError`
subclass, which the HTTP layer reports to the caller.

NIM backends do not agree on where the answer lives in a choice. Thinking
models may leave `message.content` empty and put everything into
`message.reasoning_content`. `extract()` walks the known shapes in a fixed
order. For a bare reasoning trace it falls back to `extract_from_reasoning`,
which is a heuristic: it looks for an answer label, else keeps the tail of
the trace. It does not parse the model's output.
"""

import asyncio
import logging
import re
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from pydantic import ValidationError

from nim_proxy.config import ModelProfile, TranslatorConfig
from nim_proxy.errors import (
    EmptyResponseError,
    InvalidRequestError,
    MalformedUpstreamError,
    UpstreamTimeoutError,
)
from nim_proxy.providers.base import UpstreamTransport
from nim_proxy.schemas.chat import ChatRequest, ChatResponse, Choice, Message, Usage

logger = logging.getLogger("nim_proxy.translator")

T = TypeVar("T")

_ANSWER_LABEL_RE = re.compile(
    r"\b(?:Final Answer|Answer|Result|Output)\s*:(.*)", re.IGNORECASE | re.DOTALL
)

# Choice fields tried after message.content and message.reasoning_content
_FALLBACK_FIELDS = (
    ("text",),
    ("message", "text"),
    ("delta", "content"),
    ("content",),
)


def truncate_messages(messages: Sequence[T], window: int) -> List[T]:
    """Keep the last `window` messages in order; shorter input is unchanged."""
    if window <= 0:
        return []
    return list(messages[-window:])


def clamp_max_tokens(requested: Optional[int], default: int, ceiling: int) -> int:
    return min(requested or default, ceiling)


def extract_from_reasoning(trace: str) -> str:
    """Best-effort final answer from a reasoning trace.

    1. Text after the first "Final Answer:", "Answer:", "Result:" or
       "Output:" label (case-insensitive, may span lines).
    2. Else the last three non-blank lines.
    3. Else the trace verbatim.
    """
    match = _ANSWER_LABEL_RE.search(trace)
    if match:
        answer = match.group(1).strip()
        if answer:
            return answer
    lines = [line for line in trace.splitlines() if line.strip()]
    if lines:
        return "\n".join(lines[-3:]).strip()
    return trace


def _dig(obj: Any, path: Sequence[str]) -> Any:
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _usage(raw: Optional[Mapping[str, Any]]) -> Usage:
    if not raw:
        return Usage()
    try:
        return Usage.model_validate({k: v for k, v in raw.items() if v is not None})
    except ValidationError:
        # Keep the extracted answer; bad counters are reported as zero
        logger.warning("compose usage_invalid usage=%r", dict(raw))
        return Usage()


class Translator:
    def __init__(self, config: TranslatorConfig) -> None:
        self.config = config

    def parse_request(self, body: Any) -> ChatRequest:
        if not isinstance(body, Mapping):
            raise InvalidRequestError("Request body must be a JSON object")
        messages = body.get("messages")
        if not isinstance(messages, list) or not messages:
            raise InvalidRequestError()
        try:
            return ChatRequest.model_validate(body)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            location = ".".join(str(p) for p in first.get("loc", ()))
            raise InvalidRequestError(
                "Invalid messages" if location.startswith("messages") else "Invalid request",
                details=f"{location}: {first.get('msg', 'invalid value')}",
            ) from exc

    def resolve(self, requested_model: Optional[str]) -> ModelProfile:
        name = requested_model or self.config.default_model
        upstream_id = self.config.model_map.get(
            name, self.config.fallback_upstream_model
        )
        return ModelProfile(
            upstream_model_id=upstream_id,
            is_slow_tier=self.config.is_slow_tier(upstream_id),
        )

    def shape(self, request: ChatRequest, profile: ModelProfile) -> Dict[str, Any]:
        window = self.config.message_window(profile)
        default_tokens, ceiling = self.config.max_tokens_limits(profile)
        messages = truncate_messages(request.messages, window)
        max_tokens = clamp_max_tokens(request.max_tokens, default_tokens, ceiling)
        logger.info(
            "shape upstream=%s tier=%s messages=%d->%d max_tokens=%d",
            profile.upstream_model_id,
            "slow" if profile.is_slow_tier else "fast",
            len(request.messages),
            len(messages),
            max_tokens,
        )
        return {
            "model": profile.upstream_model_id,
            "messages": [m.model_dump() for m in messages],
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self.config.default_temperature
            ),
            "top_p": self.config.top_p,
            "max_tokens": max_tokens,
            "stream": False,
        }

    def extract(self, upstream: Any) -> str:
        choices = upstream.get("choices") if isinstance(upstream, Mapping) else None
        if not isinstance(choices, list) or not choices:
            raise MalformedUpstreamError()
        choice = choices[0]
        if not isinstance(choice, Mapping):
            raise MalformedUpstreamError()

        content = _non_empty_str(_dig(choice, ("message", "content")))
        if content is not None:
            logger.debug("extract source=message.content chars=%d", len(content))
            return content

        reasoning = _non_empty_str(_dig(choice, ("message", "reasoning_content")))
        if reasoning is not None:
            logger.info("extract source=message.reasoning_content chars=%d", len(reasoning))
            return extract_from_reasoning(reasoning)

        for path in _FALLBACK_FIELDS:
            text = _non_empty_str(_dig(choice, path))
            if text is not None:
                logger.info("extract source=%s chars=%d", ".".join(path), len(text))
                return text

        raise EmptyResponseError()

    def compose(
        self,
        requested_model: str,
        text: str,
        usage: Optional[Mapping[str, Any]] = None,
        finish_reason: Optional[str] = None,
    ) -> ChatResponse:
        return ChatResponse(
            id=f"chatcmpl-{uuid.uuid4().hex}",
            object="chat.completion",
            created=int(time.time()),
            model=requested_model,
            choices=[
                Choice(
                    index=0,
                    message=Message(role="assistant", content=text),
                    finish_reason=finish_reason or "stop",
                )
            ],
            usage=_usage(usage),
        )

    async def complete(self, body: Any, transport: UpstreamTransport) -> ChatResponse:
        """Run the whole pipeline for one inbound request body."""
        request = self.parse_request(body)
        requested_model = request.model or self.config.default_model
        profile = self.resolve(requested_model)
        logger.info("route %s -> %s", requested_model, profile.upstream_model_id)
        payload = self.shape(request, profile)

        start = time.perf_counter()
        try:
            # wait_for cancels the in-flight call when the deadline passes
            data = await asyncio.wait_for(
                transport.send(payload), timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError:
            elapsed = time.perf_counter() - start
            logger.error(
                "upstream timeout model=%s elapsed=%.2fs",
                profile.upstream_model_id,
                elapsed,
            )
            raise UpstreamTimeoutError(elapsed, model=profile.upstream_model_id)
        logger.info(
            "upstream ok model=%s elapsed_ms=%.0f",
            profile.upstream_model_id,
            (time.perf_counter() - start) * 1000.0,
        )

        text = self.extract(data)
        finish_reason = data["choices"][0].get("finish_reason")
        usage = data.get("usage")
        return self.compose(
            requested_model,
            text,
            usage=usage if isinstance(usage, Mapping) else None,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
        )
