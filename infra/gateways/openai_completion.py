"""Completion gateway over an OpenAI-compatible chat completions endpoint."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog
from openai import APIConnectionError, APIStatusError, RateLimitError

from chat.exceptions import CompletionError
from infra.resources import OpenAIResource

logger = structlog.get_logger("infra.openai")


def render_form_context(form_context: Mapping[str, Any]) -> str:
    body = json.dumps(dict(form_context), ensure_ascii=False, indent=2, default=str)
    return f"Current form context:\n{body}"


class OpenAICompletionGateway:
    def __init__(
        self,
        resource: OpenAIResource,
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        max_retries: int = 2,
    ):
        self.resource = resource
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries

    def _payload(
        self,
        messages: Sequence[Mapping[str, str]],
        form_context: Optional[Mapping[str, Any]],
    ) -> List[Dict[str, str]]:
        payload = [{"role": m["role"], "content": m["content"]} for m in messages]
        if form_context:
            # Right after the persona so the turn order stays intact.
            at = 1 if payload and payload[0]["role"] == "system" else 0
            payload.insert(
                at, {"role": "system", "content": render_form_context(form_context)}
            )
        return payload

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        form_context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        await self.resource.init()
        client = self.resource.client
        if client is None:
            raise CompletionError("OPENAI_API_KEY is not configured", model=self.model)

        payload = self._payload(messages, form_context)
        delay = 1.0
        for attempt in range(1, self.max_retries + 2):
            try:
                resp = await client.chat.completions.create(
                    model=self.model,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    messages=payload,
                )
                content = (resp.choices[0].message.content or "").strip()
                logger.debug(
                    "completion.done",
                    model=self.model,
                    messages=len(payload),
                    attempt=attempt,
                )
                return content
            except (RateLimitError, APIConnectionError) as e:
                if attempt > self.max_retries:
                    raise CompletionError(str(e), model=self.model) from e
                logger.info(
                    "completion.retrying", model=self.model, attempt=attempt, error=str(e)
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, 20.0)
            except APIStatusError as e:
                raise CompletionError(
                    str(e), model=self.model, details={"status_code": e.status_code}
                ) from e

        raise CompletionError("no response after retries", model=self.model)
