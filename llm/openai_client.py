import logging
from typing import AsyncIterator, List

from openai import AsyncOpenAI, OpenAIError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from base import LLMBase, LLMMessage
from config.settings import settings
from exceptions import GenerationFailure

openai_cfg = settings.openai


class OpenAIClient(LLMBase):
    name = "OpenAI"

    def __init__(self):
        self.client = AsyncOpenAI(
            api_key=openai_cfg.api_key,
            base_url=openai_cfg.base_url,
            timeout=openai_cfg.request_timeout_seconds,
            max_retries=0,
        )
        self.model = openai_cfg.chat_model
        self.decision_model = openai_cfg.decision_model or openai_cfg.chat_model
        self.temperature = openai_cfg.temperature
        self.logger = logging.getLogger("app")

    async def stream(self, messages: List[LLMMessage]) -> AsyncIterator[str]:
        self.logger.debug(f"Streaming completion for {len(messages)} messages with {self.model}")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                stream=True,
            )
        except OpenAIError as e:
            raise GenerationFailure(f"Unable to communicate with the LLM - {e}") from e
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            raise GenerationFailure(f"Streaming error: {e}") from e
        finally:
            await response.close()

    @retry(
        retry=retry_if_exception_type(OpenAIError),
        wait=wait_random_exponential(multiplier=openai_cfg.backoff_factor, max=5),
        stop=stop_after_attempt(max(1, openai_cfg.max_retries)),
        reraise=True,
    )
    async def _complete_with_backoff(self, messages: List[LLMMessage]) -> str:
        resp = await self.client.chat.completions.create(
            model=self.decision_model,
            messages=messages,
            temperature=0.0,
        )
        return resp.choices[0].message.content or ""

    async def complete(self, messages: List[LLMMessage]) -> str:
        try:
            return await self._complete_with_backoff(messages)
        except OpenAIError as e:
            self.logger.error(f"All {openai_cfg.max_retries} LLM attempts failed: {e}")
            raise GenerationFailure(f"Unable to communicate with the LLM - {e}") from e
