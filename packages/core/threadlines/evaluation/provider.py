"""Evaluation provider: ask a model whether a diff follows one threadline."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol, Tuple, Type

from claude_agent_sdk import ClaudeAgentOptions, ClaudeSDKClient
from claude_agent_sdk.types import AssistantMessage, ResultMessage, TextBlock
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from threadlines.errors import EvaluationTimeoutError, ProviderError
from threadlines.models.threadline import Threadline
from threadlines.prompts.loader import build_threadline_prompt, load_prompt

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class EvaluationRequest:
    """Everything the provider needs to evaluate one threadline."""

    threadline: Threadline
    diff: str
    files: Tuple[str, ...]
    context_contents: Dict[str, str] = field(default_factory=dict)


class EvaluationResponse(BaseModel):
    status: Literal["compliant", "attention", "not_relevant"] = Field(..., description="Verdict")
    reasoning: str = Field("", description="Explanation citing path:line")
    file_references: List[str] = Field(default_factory=list, description="Files with violations")

    @model_validator(mode='before')
    @classmethod
    def alias_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            if 'fileReferences' in data and 'file_references' not in data:
                data['file_references'] = data['fileReferences']
            if data.get('file_references') is None:
                data['file_references'] = []
            if data.get('reasoning') is None:
                data['reasoning'] = ""
        return data

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v


class EvaluationProvider(Protocol):
    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        ...


def _extract_json_text(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ProviderError("Model response did not contain a JSON object")
    return text[start:end + 1]


def parse_evaluation_response(text: str) -> EvaluationResponse:
    """
    Parse the model's JSON verdict, tolerating code fences and surrounding prose.

    Raises:
        ProviderError: If no valid verdict can be read
    """
    try:
        data = json.loads(_extract_json_text(text))
    except json.JSONDecodeError as exc:
        raise ProviderError(f"Model response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProviderError("Model response JSON must be an object")
    try:
        return EvaluationResponse(**data)
    except ValidationError as exc:
        raise ProviderError(f"Model response failed validation: {exc}") from exc


class ClaudeEvaluationProvider:
    """
    Evaluate threadlines with a single-turn, tool-less Claude query.

    Each request carries its own deadline, shorter than the dispatcher's
    per-task deadline, so an abandoned call still ends on its own.
    """

    def __init__(
        self,
        *,
        model: str,
        request_timeout_seconds: float,
        cwd: Optional[Path] = None,
        claude_client_cls: Optional[Type[Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.model = model
        self.request_timeout_seconds = request_timeout_seconds
        self.cwd = cwd
        self._claude_client_cls = claude_client_cls or ClaudeSDKClient
        self.logger = logger or logging.getLogger(__name__)

    def build_options(self) -> ClaudeAgentOptions:
        return ClaudeAgentOptions(
            model=self.model,
            max_turns=1,
            allowed_tools=[],
            system_prompt=load_prompt("system"),
            cwd=str(self.cwd) if self.cwd else None,
            permission_mode="default",
        )

    async def _collect_text(self, client: Any, prompt: str) -> str:
        """Send the prompt and gather assistant text until the result message."""
        await client.query(prompt)
        chunks: List[str] = []
        async for message in client.receive_messages():
            if isinstance(message, AssistantMessage):
                for block in message.content:
                    if isinstance(block, TextBlock):
                        chunks.append(block.text)
            elif isinstance(message, ResultMessage):
                if message.is_error:
                    raise ProviderError(f"Model request failed: {message.result or message.subtype}")
                break
        return "".join(chunks)

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        threadline = request.threadline
        prompt = build_threadline_prompt(
            threadline_id=threadline.id,
            threadline_version=threadline.version,
            threadline_content=threadline.content,
            diff=request.diff,
            files=request.files,
            context_contents=request.context_contents,
        )
        self.logger.debug("Evaluating %s (%d prompt chars)", threadline.id, len(prompt))

        try:
            async with self._claude_client_cls(options=self.build_options()) as client:
                text = await asyncio.wait_for(
                    self._collect_text(client, prompt),
                    timeout=self.request_timeout_seconds,
                )
        except asyncio.TimeoutError as exc:
            raise EvaluationTimeoutError(
                f"Model request for {threadline.id} exceeded {self.request_timeout_seconds}s"
            ) from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        if not text.strip():
            raise ProviderError(f"Empty model response for {threadline.id}")
        return parse_evaluation_response(text)
