from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

import openai
from openai import AsyncOpenAI
from openai.types.responses import Response

from core.configs.forecast_config import ForecastServiceConfig
from forecast_service.errors import ForecastConfigurationError, UpstreamServiceError, UpstreamTimeoutError
from forecast_service.schema_modules.input_schemas import ForecastRequest

logger = logging.getLogger(__name__)


def _extract_output_text(response: Response) -> str:
    """
    Normalize the Responses API output into a plain string.

    `response.output_text` can be empty even when the richer `output` payload still carries
    `output_text` blocks, so both are inspected.
    """

    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    fragments: list[str] = []
    for item in getattr(response, "output", None) or []:
        for block in getattr(item, "content", None) or []:
            if getattr(block, "type", None) not in {"output_text", "text"}:
                continue
            block_text = getattr(block, "text", None)
            if isinstance(block_text, str) and block_text.strip():
                fragments.append(block_text.strip())
    return "\n".join(fragments)


def _prepare_response_input(messages: Sequence[Dict[str, Any]]) -> list[dict[str, Any]]:
    prepared: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role", "user")
        text_type = "output_text" if role == "assistant" else "input_text"
        prepared.append({"role": role, "content": [{"type": text_type, "text": str(message.get("content") or "")}]})
    return prepared


class OpenAIResponsesClient:
    """
    Thin async wrapper around the OpenAI Responses API.

    Every request inherits the model, reasoning effort and output-token cap from the
    ForecastServiceConfig it was built with.
    """

    def __init__(self, config: ForecastServiceConfig) -> None:
        if not config.api_key:
            raise ForecastConfigurationError("OPENAI_API_KEY is not configured.")

        self._config = config
        self._client = AsyncOpenAI(api_key=config.api_key, timeout=config.timeout_seconds, max_retries=0)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.close()

    async def create_text(self, messages: Sequence[Dict[str, Any]], *, metadata: Dict[str, str] | None = None) -> str:
        payload: Dict[str, Any] = {
            "model": self._config.model_name,
            "input": _prepare_response_input(messages),
        }
        if self._config.reasoning_effort:
            payload["reasoning"] = {"effort": self._config.reasoning_effort}
        if self._config.max_output_tokens is not None:
            payload["max_output_tokens"] = self._config.max_output_tokens
        if metadata:
            payload["metadata"] = dict(metadata)

        logger.info(
            "openai.responses.create.start",
            extra={
                "model": payload["model"],
                "input_messages": len(payload["input"]),
                "reasoning_effort": payload.get("reasoning"),
                "max_output_tokens": payload.get("max_output_tokens"),
            },
        )

        try:
            response = await self._client.responses.create(**payload)
        except openai.APITimeoutError as exc:
            raise UpstreamTimeoutError(self._config.timeout_seconds) from exc
        except openai.APIError as exc:
            logger.warning(
                "openai.responses.create.failed error_type=%s", type(exc).__name__, exc_info=exc
            )
            raise UpstreamServiceError(f"Forecast service request failed: {exc}") from exc

        text_output = _extract_output_text(response)
        logger.info(
            "openai.responses.create.completed",
            extra={
                "response_id": response.id,
                "model": response.model,
                "usage": getattr(response, "usage", None),
                "output_length": len(text_output),
            },
        )
        if not text_output:
            logger.warning("openai.create_text.empty_output response_id=%s", response.id)
        return text_output

    async def __aenter__(self) -> "OpenAIResponsesClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class OpenAIForecastClient:
    """Adapts OpenAIResponsesClient to the forecast pipeline's upstream interface."""

    def __init__(self, config: ForecastServiceConfig, *, responses_client: OpenAIResponsesClient | None = None) -> None:
        self._responses = responses_client or OpenAIResponsesClient(config)

    async def complete(self, request: ForecastRequest) -> str:
        return await self._responses.create_text(
            request.as_messages(),
            metadata={
                "category": request.context.category.value,
                "horizon_days": str(request.horizon_days),
            },
        )

    async def aclose(self) -> None:
        await self._responses.aclose()


__all__ = ["OpenAIForecastClient", "OpenAIResponsesClient"]
