"""Wire-format translation for OpenAI-compatible chat APIs.

Purpose:
    Keep ``client.py`` focused on I/O. Everything here is pure: request
    payload construction, response/fragment normalization and SSE line
    parsing.

Notes:
    - Unknown fields in provider payloads are ignored; missing optional
      fields map to ``None`` rather than raising.
    - A malformed SSE ``data:`` line is skipped (logged at debug level) so a
      single bad frame does not end an otherwise healthy stream.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..base.errors import ErrorCode, SutraError, error_from_status
from ..base.logging import get_logger, log_event
from ..base.models import (
    ChatChoice,
    ChatRequest,
    ChatResponse,
    ChatStreamDelta,
    DeltaMessage,
    EmbeddingData,
    EmbeddingRequest,
    EmbeddingResponse,
    FunctionCall,
    Message,
    ModelInfo,
    StreamChoice,
    ToolCall,
    ToolCallDelta,
    Usage,
)

_logger = get_logger("sutra.openai_compat")

SSE_DONE = "[DONE]"


def build_payload(request: ChatRequest, *, model: str, stream: bool) -> Dict[str, Any]:
    """Return the ``/chat/completions`` JSON body for ``request``."""
    payload: Dict[str, Any] = {
        "model": model,
        "messages": [m.to_dict() for m in request.messages],
    }
    payload.update(request.sampling_params())
    if stream:
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}
    payload.update(request.extra)
    return payload


def _usage(data: Any) -> Optional[Usage]:
    if not isinstance(data, Mapping):
        return None
    prompt = int(data.get("prompt_tokens") or 0)
    completion = int(data.get("completion_tokens") or 0)
    total = int(data.get("total_tokens") or prompt + completion)
    return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _tool_calls(items: Any) -> Optional[List[ToolCall]]:
    if not items:
        return None
    calls: List[ToolCall] = []
    for item in items:
        fn = item.get("function") or {}
        calls.append(
            ToolCall(
                id=str(item.get("id") or ""),
                type=str(item.get("type") or "function"),
                function=FunctionCall(name=str(fn.get("name") or ""), arguments=str(fn.get("arguments") or "")),
            )
        )
    return calls


def response_from_payload(data: Mapping[str, Any], *, provider: str, model: str) -> ChatResponse:
    """Normalize a non-streaming completion body."""
    choices: List[ChatChoice] = []
    for position, raw in enumerate(data.get("choices") or []):
        msg = raw.get("message") or {}
        choices.append(
            ChatChoice(
                index=int(raw.get("index", position)),
                message=Message(
                    role=msg.get("role") or "assistant",
                    content=msg.get("content"),
                    tool_calls=_tool_calls(msg.get("tool_calls")),
                ),
                finish_reason=raw.get("finish_reason"),
            )
        )
    choices.sort(key=lambda c: c.index)
    return ChatResponse(
        id=str(data.get("id") or f"chatcmpl-{uuid.uuid4().hex}"),
        model=str(data.get("model") or model),
        provider=provider,
        choices=choices,
        usage=_usage(data.get("usage")),
        created=int(data.get("created") or time.time()),
    )


def _tool_call_deltas(items: Any) -> Optional[List[ToolCallDelta]]:
    if not items:
        return None
    deltas: List[ToolCallDelta] = []
    for item in items:
        fn = item.get("function") or {}
        deltas.append(
            ToolCallDelta(
                index=item.get("index"),
                id=item.get("id"),
                type=item.get("type"),
                name=fn.get("name"),
                arguments=fn.get("arguments"),
            )
        )
    return deltas


def delta_from_payload(data: Mapping[str, Any], *, provider: str, model: str) -> ChatStreamDelta:
    """Normalize one streamed chunk body."""
    choices: List[StreamChoice] = []
    for position, raw in enumerate(data.get("choices") or []):
        delta = raw.get("delta") or {}
        choices.append(
            StreamChoice(
                index=int(raw.get("index", position)),
                delta=DeltaMessage(
                    role=delta.get("role"),
                    content=delta.get("content"),
                    tool_calls=_tool_call_deltas(delta.get("tool_calls")),
                ),
                finish_reason=raw.get("finish_reason"),
            )
        )
    return ChatStreamDelta(
        id=str(data.get("id") or ""),
        model=str(data.get("model") or model),
        provider=provider,
        choices=choices,
        usage=_usage(data.get("usage")),
        created=int(data.get("created") or 0),
    )


def parse_sse_line(line: str) -> Optional[Any]:
    """Decode one SSE line.

    Returns the decoded JSON object, :data:`SSE_DONE` for the terminal
    sentinel, or ``None`` for blank lines, comments, non-data fields and
    malformed payloads.
    """
    if not line or not line.startswith("data:"):
        return None
    body = line[5:].strip()
    if body == SSE_DONE:
        return SSE_DONE
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        log_event(_logger, "stream.bad_frame", level=logging.DEBUG, frame=body[:200])
        return None


def models_from_payload(data: Mapping[str, Any], *, provider: str) -> List[ModelInfo]:
    """Normalize a ``GET /models`` body."""
    models: List[ModelInfo] = []
    for item in data.get("data") or []:
        model_id = item.get("id")
        if not model_id:
            continue
        context = item.get("context_length") or item.get("context_window")
        models.append(
            ModelInfo(
                id=str(model_id),
                provider=provider,
                name=str(item.get("name") or model_id),
                context_length=int(context) if context else None,
                extra={k: v for k, v in item.items() if k in ("owned_by", "created")},
            )
        )
    return models


def build_embedding_payload(request: EmbeddingRequest, *, model: str) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"model": model, "input": request.input}
    for name in ("encoding_format", "dimensions", "user"):
        value = getattr(request, name)
        if value is not None:
            payload[name] = value
    return payload


def embedding_from_payload(data: Mapping[str, Any], *, provider: str, model: str) -> EmbeddingResponse:
    """Normalize a ``POST /embeddings`` body; items keep their reported index."""
    items = [
        EmbeddingData(
            index=int(item.get("index", position)),
            embedding=[float(x) for x in item.get("embedding") or []],
        )
        for position, item in enumerate(data.get("data") or [])
    ]
    return EmbeddingResponse(
        model=str(data.get("model") or model),
        provider=provider,
        data=items,
        usage=_usage(data.get("usage")),
    )


def error_message(body: str) -> str:
    """Extract a readable message from an error body (JSON ``error`` or raw text)."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return body.strip()[:500]
    if isinstance(data, Mapping):
        err = data.get("error")
        if isinstance(err, Mapping) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
        if data.get("message"):
            return str(data["message"])
    return body.strip()[:500]


def retry_after_seconds(headers: httpx.Headers) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header."""
    raw = headers.get("retry-after")
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def status_error(response: httpx.Response, body: str, *, provider: str, model: str) -> SutraError:
    """Build the structured error for a non-2xx response."""
    error = error_from_status(
        response.status_code,
        error_message(body),
        provider=provider,
        model=model,
        retry_after=retry_after_seconds(response.headers),
    )
    error.details["body"] = body[:500]
    return error


def stream_error_from_payload(data: Mapping[str, Any], *, provider: str, model: str) -> Optional[SutraError]:
    """Return an error when a streamed frame carries an ``error`` object instead of choices."""
    err = data.get("error")
    if not err:
        return None
    message = err.get("message") if isinstance(err, Mapping) else str(err)
    return SutraError(
        ErrorCode.STREAM_ERROR,
        str(message or "provider reported a stream error"),
        provider=provider,
        model=model,
        retryable=False,
    )


__all__ = [
    "SSE_DONE",
    "build_embedding_payload",
    "build_payload",
    "delta_from_payload",
    "embedding_from_payload",
    "error_message",
    "models_from_payload",
    "parse_sse_line",
    "response_from_payload",
    "retry_after_seconds",
    "status_error",
    "stream_error_from_payload",
]
