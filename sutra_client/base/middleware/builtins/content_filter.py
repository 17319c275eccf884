"""Content filter middleware.

Rejects requests whose message text matches a blocked pattern and can
sanitize request and response text through caller-supplied functions.
"""
from __future__ import annotations

import dataclasses
import re
from typing import Callable, Iterable, List, Optional, Pattern, Union

from ...errors import ContentFilteredError
from ...models import ChatRequest, ChatResponse, Message
from ..context import PipelineContext
from ..middleware_base import Middleware

TextFilter = Callable[[str], str]


class ContentFilterMiddleware(Middleware):
    name = "content-filter"
    priority = 3

    def __init__(
        self,
        *,
        blocked_patterns: Iterable[Union[str, Pattern[str]]] = (),
        filter_request: Optional[TextFilter] = None,
        filter_response: Optional[TextFilter] = None,
    ) -> None:
        self.blocked_patterns: List[Pattern[str]] = [
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE) for p in blocked_patterns
        ]
        self.filter_request = filter_request
        self.filter_response = filter_response

    def _check(self, text: str, request: ChatRequest) -> None:
        for pattern in self.blocked_patterns:
            if pattern.search(text):
                raise ContentFilteredError(
                    "Request content matched a blocked pattern",
                    provider=request.provider,
                    model=request.model,
                    details={"pattern": pattern.pattern},
                )

    def _sanitize(self, message: Message, fn: TextFilter) -> Message:
        if isinstance(message.content, str):
            return dataclasses.replace(message, content=fn(message.content))
        if isinstance(message.content, list):
            parts = [
                dataclasses.replace(p, text=fn(p.text)) if p.type == "text" and p.text else p
                for p in message.content
            ]
            return dataclasses.replace(message, content=parts)
        return message

    async def before_request(self, request: ChatRequest, ctx: PipelineContext) -> ChatRequest:
        for message in request.messages:
            self._check(message.text(), request)
        if self.filter_request is None:
            return request
        messages = [self._sanitize(m, self.filter_request) for m in request.messages]
        return dataclasses.replace(request, messages=messages)

    async def after_response(self, response: ChatResponse, ctx: PipelineContext) -> ChatResponse:
        if self.filter_response is None:
            return response
        choices = [
            dataclasses.replace(c, message=self._sanitize(c.message, self.filter_response))
            for c in response.choices
        ]
        return dataclasses.replace(response, choices=choices)


__all__ = ["ContentFilterMiddleware"]
