"""Canonical request/response DTOs (public API facade).

Adapters translate between these dataclasses and a remote API's wire format;
everything inside the client (pipeline, registry, executor, accumulator)
speaks only these types.
"""

from .models_parts.content_part import ContentPart, ContentPartType
from .models_parts.tool_call import FunctionCall, ToolCall
from .models_parts.message import Message, Role
from .models_parts.usage import Timing, Usage
from .models_parts.chat_request import ChatRequest
from .models_parts.chat_response import ChatChoice, ChatResponse
from .models_parts.stream_delta import ChatStreamDelta, DeltaMessage, StreamChoice, ToolCallDelta
from .models_parts.model_info import ModelInfo
from .models_parts.embedding import EmbeddingData, EmbeddingRequest, EmbeddingResponse

__all__ = [
    "ContentPart",
    "ContentPartType",
    "FunctionCall",
    "ToolCall",
    "Message",
    "Role",
    "Timing",
    "Usage",
    "ChatRequest",
    "ChatChoice",
    "ChatResponse",
    "ChatStreamDelta",
    "DeltaMessage",
    "StreamChoice",
    "ToolCallDelta",
    "ModelInfo",
    "EmbeddingRequest",
    "EmbeddingData",
    "EmbeddingResponse",
]
