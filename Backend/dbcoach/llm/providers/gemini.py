# dbcoach/llm/providers/gemini.py
"""
Google Gemini generator.
"""
import json
from typing import Any, Dict, Optional

import aiohttp

from dbcoach.core.config import settings
from dbcoach.core.exceptions import ErrorKind, GenerationError
from dbcoach.core.logging import log
from dbcoach.llm.prompts import build_prompt

DEFAULT_MODEL = "gemini-2.0-flash-exp"
API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status from the Gemini API onto an ErrorKind."""
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status in (401, 403):
        return ErrorKind.AUTH
    if status == 400:
        return ErrorKind.INVALID_REQUEST
    if status == 408:
        return ErrorKind.TIMEOUT
    if status >= 500:
        return ErrorKind.UNAVAILABLE
    return ErrorKind.UNKNOWN


def parse_response(phase: str, text: str) -> str:
    """Pull the generated text out of a generateContent response body."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(phase, f"Failed to parse Gemini response: {e}", ErrorKind.UNAVAILABLE) from e

    if not isinstance(data, dict):
        raise GenerationError(phase, f"Unexpected response body: {type(data).__name__}", ErrorKind.UNAVAILABLE)

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise GenerationError(phase, "No candidates in response", ErrorKind.UNAVAILABLE)

    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts:
        raise GenerationError(phase, "No parts in response", ErrorKind.UNAVAILABLE)

    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiGenerator:
    """Generator backed by the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ):
        self.api_key = api_key or settings.llm.gemini_api_key
        self.model = model or settings.llm.default_model or DEFAULT_MODEL
        self.temperature = settings.llm.temperature if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or settings.llm.max_output_tokens

    def build_payload(self, phase: str, context: Dict[str, Any]) -> Dict[str, Any]:
        system_prompt, prompt = build_prompt(phase, context)
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return payload

    async def invoke(self, phase: str, context: Dict[str, Any], timeout: float) -> str:
        """
        Call Gemini for one phase.

        Raises:
            GenerationError with a kind derived from the HTTP status, or
            NETWORK when the request never got a response
        """
        if not self.api_key:
            raise GenerationError(phase, "GEMINI_API_KEY not configured", ErrorKind.AUTH)

        url = f"{API_URL}/{self.model}:generateContent?key={self.api_key}"
        payload = self.build_payload(phase, context)

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                    text = await response.text()
                    status = response.status
        except aiohttp.ClientError as e:
            raise GenerationError(phase, f"Network error: {e}", ErrorKind.NETWORK) from e

        if status != 200:
            kind = kind_for_status(status)
            log("GENERATOR", f"[GEMINI] Error {status} ({kind.value}): {text[:300]}")
            raise GenerationError(phase, f"Gemini API error {status}: {text[:200]}", kind)

        return parse_response(phase, text)
