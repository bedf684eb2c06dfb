# llm/dispatcher.py
"""
Upstream Dispatcher with Failover

Sends a composed prompt to the generation backend. Quota, rate-limit and
credential failures rotate the process-wide CredentialPool and retry, at
most once per credential. Anything else, or running out of credentials,
ends in a fixed fallback reply instead of an exception.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

import openai
from openai import AsyncOpenAI
from loguru import logger

from ..config import settings
from ..errors import TransientUpstreamError, UpstreamError
from ..schemas.ai_schemas import GenerationResult
from .credential_pool import CredentialPool


FALLBACK_MESSAGE = "ขออภัย เกิดข้อผิดพลาดในการประมวลผล กรุณาลองใหม่อีกครั้ง"
FALLBACK_SUGGESTIONS = ["ลองใหม่", "ช่วยเหลือ", "ติดต่อผู้ดูแล"]

RETRYABLE_STATUS_CODES = {429, 403}

RETRYABLE_MESSAGE_MARKERS = [
    "quota",
    "rate limit",
    "resource_exhausted",
    "api key not valid",
    "permission",
]

SYSTEM_PROMPT = "คุณคือผู้ช่วย AI ของระบบจองตั๋วอีเว้นท์ ตอบเป็นภาษาไทย สุภาพ กระชับ และอ้างอิงข้อมูลจริงในระบบเท่านั้น"


def is_retryable(status_code: Optional[int], message: str) -> bool:
    """Quota / rate / credential failures that another key might not hit"""
    if status_code in RETRYABLE_STATUS_CODES:
        return True
    lowered = (message or "").lower()
    return any(marker in lowered for marker in RETRYABLE_MESSAGE_MARKERS)


def to_upstream_error(exc: Exception) -> UpstreamError:
    """Translate an openai SDK exception into the assistant taxonomy"""
    status_code = getattr(exc, "status_code", None)
    message = str(exc)

    if isinstance(exc, (openai.RateLimitError, openai.PermissionDeniedError, openai.AuthenticationError)):
        return TransientUpstreamError(message, status_code)
    if is_retryable(status_code, message):
        return TransientUpstreamError(message, status_code)
    return UpstreamError(message, status_code)


class GenerationClient(ABC):
    """One generation backend bound to one credential"""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Raises:
            TransientUpstreamError: quota/rate/credential failure
            UpstreamError: any other failure
        """


class OpenAIGenerationClient(GenerationClient):
    """
    OpenAI SDK client. Defaults target Gemini's OpenAI-compatible endpoint.

    SDK-level retries are disabled; the dispatcher owns retry policy.
    """

    def __init__(self, api_key: str, model: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.model = model or settings.GENERATION_MODEL
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or settings.GENERATION_BASE_URL,
            timeout=timeout or settings.GENERATION_TIMEOUT,
            max_retries=0,
        )

    async def generate(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                max_tokens=1024,
                temperature=0.7
            )
        except openai.APIError as e:
            raise to_upstream_error(e) from e
        return response.choices[0].message.content or ""


ClientFactory = Callable[[str], GenerationClient]


class UpstreamDispatcher:
    """
    Single active client bound to the pool's current credential.

    The client is rebuilt whenever the pool index differs from the one it
    was built for, so a rotation by any session is picked up by all.
    """

    def __init__(self, pool: CredentialPool, client_factory: Optional[ClientFactory] = None):
        self.pool = pool
        self.client_factory = client_factory or OpenAIGenerationClient
        self._client: Optional[GenerationClient] = None
        self._client_index: Optional[int] = None
        self._client_lock = threading.Lock()

    def _active_client(self) -> Tuple[GenerationClient, int]:
        with self._client_lock:
            index, credential = self.pool.active()
            if self._client is None or self._client_index != index:
                self._client = self.client_factory(credential)
                self._client_index = index
                logger.debug(f"Generation client bound to credential #{index + 1}")
            return self._client, index

    @staticmethod
    def _fallback(error: str, attempts: int) -> GenerationResult:
        return GenerationResult(
            text=FALLBACK_MESSAGE,
            error=error,
            attempts=attempts,
            suggestions=list(FALLBACK_SUGGESTIONS)
        )

    async def generate(self, prompt: str) -> GenerationResult:
        """
        Generate text for `prompt`

        Returns:
            GenerationResult; on failure `error` is set and `text` is the fallback
        """
        if self.pool.size == 0:
            logger.error("No generation credentials configured (GENERATION_API_KEYS)")
            return self._fallback("no credentials configured", 0)

        errors: List[str] = []
        attempts = 0
        while attempts < self.pool.size:
            client, index = self._active_client()
            attempts += 1
            try:
                text = await client.generate(prompt)
                return GenerationResult(text=text, attempts=attempts)
            except TransientUpstreamError as e:
                errors.append(e.message)
                logger.warning(f"Credential #{index + 1} rejected ({e.status_code}): {e.message}")
                self.pool.rotate(expected_index=index)
            except UpstreamError as e:
                logger.error(f"Generation failed without retry: {e.message}")
                return self._fallback(e.message, attempts)
            except Exception as e:
                logger.exception(f"Generation client raised unexpectedly: {e}")
                return self._fallback(str(e), attempts)

        logger.error(f"All {attempts} generation credentials exhausted")
        return self._fallback(errors[-1] if errors else "credentials exhausted", attempts)
