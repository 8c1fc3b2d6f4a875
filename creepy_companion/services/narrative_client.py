# creepy_companion/services/narrative_client.py
"""Narrative text collaborator client.

``generate`` never raises: transient failures are retried once, anything that
still fails resolves to a generic fallback description with ``error`` set.
"""
import asyncio
import random
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel

log = structlog.get_logger(__name__)

FALLBACK_DESCRIPTIONS = [
    "A mysterious artifact",
    "Something strange and unknowable",
    "An object that defies description",
    "A thing that shouldn't exist",
    "An offering from the void",
]

RETRYABLE_STATUS = {502, 504}


class NarrativeRequest(BaseModel):
    prompt: str
    temperature: float = 0.8
    max_tokens: int = 100


class NarrativeResponse(BaseModel):
    text: str
    error: Optional[str] = None


class NarrativeError(Exception):
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class NarrativeClient:
    def __init__(self, url: str, timeout_seconds: float = 10.0, retry_delay_seconds: float = 1.0,
                 max_retries: int = 1, rng: Optional[random.Random] = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.max_retries = max_retries
        self._rng = rng or random.Random()

    def fallback_text(self) -> str:
        return self._rng.choice(FALLBACK_DESCRIPTIONS)

    async def _post(self, request: NarrativeRequest) -> str:
        body = {
            "prompt": request.prompt,
            "temperature": request.temperature,
            "maxTokens": request.max_tokens,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.post(self.url, json=body)
                resp.raise_for_status()
        except httpx.TimeoutException:
            raise NarrativeError("Narrative provider timed out", retryable=True)
        except httpx.ConnectError:
            raise NarrativeError("Cannot connect to narrative provider", retryable=True)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise NarrativeError(f"Narrative provider returned {status}",
                                 retryable=status in RETRYABLE_STATUS)
        except httpx.HTTPError as e:
            raise NarrativeError(f"Narrative request failed: {e}")

        try:
            data = resp.json()
        except ValueError:
            raise NarrativeError("Narrative provider returned invalid JSON")
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise NarrativeError("Unexpected response format from narrative provider")
        return text.strip()

    async def generate(self, request: NarrativeRequest) -> NarrativeResponse:
        attempt = 0
        while True:
            try:
                return NarrativeResponse(text=await self._post(request))
            except NarrativeError as e:
                if e.retryable and attempt < self.max_retries:
                    attempt += 1
                    log.warning("narrative_request_retrying", error=str(e), attempt=attempt)
                    await asyncio.sleep(self.retry_delay_seconds)
                    continue
                log.error("narrative_request_failed_using_fallback", error=str(e),
                          attempts=attempt + 1)
                return NarrativeResponse(text=self.fallback_text(), error=str(e))
