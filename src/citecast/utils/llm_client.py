"""
LLM Client Wrapper with Structured Output Support

This module provides a wrapper around LangChain's ChatOpenAI that adds:
- JSON-only prompting
- Tolerant JSON extraction (markdown fences, surrounding prose)
- Pydantic validation with an optional validation context
- Bounded retries with exponential backoff
"""
import asyncio
import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from citecast.config import settings
from citecast.core.errors import StructuredOutputError
from citecast.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

JSON_ONLY_INSTRUCTIONS = """

CRITICAL INSTRUCTIONS:
1. You MUST respond with valid JSON only - no markdown, no explanations, no text before or after.
2. The JSON must match the exact schema provided.
3. Do not include any text outside the JSON object.
4. Start your response with { or [ and end with } or ]"""

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_RAW_JSON = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


class LLMClient:
    """
    Wrapper around LangChain's ChatOpenAI returning validated pydantic models.
    """

    def __init__(
        self,
        model_name: str = None,
        temperature: float = None,
        api_key: str = None,
        max_tokens: int = None,
        chat_model: Any = None,
    ):
        self.model_name = model_name or settings.llm_model
        self.client = chat_model or ChatOpenAI(
            model=self.model_name,
            temperature=settings.llm_temperature if temperature is None else temperature,
            max_tokens=max_tokens or settings.llm_max_tokens,
            openai_api_key=api_key or settings.openai_api_key,
        )
        logger.info("llm_client_initialized", model=self.model_name)

    @staticmethod
    def extract_json(text: str) -> str:
        """
        Pull the JSON payload out of a model response.

        Prefers a fenced ```json block, then the outermost {...} or [...]
        span, and finally returns the stripped text unchanged.
        """
        fenced = _FENCED_JSON.search(text)
        if fenced:
            return fenced.group(1).strip()

        raw = _RAW_JSON.search(text)
        if raw:
            return raw.group(1).strip()

        return text.strip()

    @staticmethod
    def _response_text(response: Any) -> str:
        content = getattr(response, "content", response)
        if isinstance(content, str):
            return content
        # Content blocks: [{"type": "text", "text": ...}, ...]
        parts = []
        for block in content or []:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        if not parts:
            raise ValueError("No text content in response")
        return "".join(parts)

    async def generate_structured(
        self,
        schema: Type[T],
        system_prompt: str,
        user_prompt: str,
        max_retries: int = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Ask the model for JSON matching schema.

        Args:
            schema: Pydantic model the response must validate against
            system_prompt: Role and rules for the model
            user_prompt: Task payload
            max_retries: Total attempts (defaults to settings.llm_max_retries)
            context: Pydantic validation context (e.g. {"chunk_ids": {...}})

        Returns:
            Validated schema instance

        Raises:
            StructuredOutputError: every attempt failed; chained to the last error
        """
        attempts = max_retries or settings.llm_max_retries
        messages = [
            SystemMessage(content=system_prompt + JSON_ONLY_INSTRUCTIONS),
            HumanMessage(content=user_prompt),
        ]

        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                response = await self.client.ainvoke(messages)
                payload = self.extract_json(self._response_text(response))
                result = schema.model_validate_json(payload, context=context)

                logger.info(
                    "structured_output_parsed",
                    model_type=schema.__name__,
                    attempt=attempt + 1,
                )
                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    "structured_output_failed",
                    model_type=schema.__name__,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    error=str(e),
                )
                if attempt < attempts - 1:
                    await asyncio.sleep(2 ** attempt)

        raise StructuredOutputError(
            f"Failed to generate valid {schema.__name__} after {attempts} attempts: {last_error}"
        ) from last_error
