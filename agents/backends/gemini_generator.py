"""
Gemini text generator backend.

Implements the generator interface used by the slot generator:
    async (prompt: str) -> str

Any failure to obtain a response (network, quota, timeout, SDK error) is
raised as TransportFailure. No retries here: network-level retry policy is
owned by whoever calls the pipeline.
"""

import asyncio
import logging
import os
from typing import Optional

import google.genai as genai
from google.genai import types

from runtime.errors import TransportFailure

logger = logging.getLogger(__name__)


class GeminiTextGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        timeout_sec: float = 120.0,
        client=None,
    ):
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if client is None and not api_key:
            raise ValueError("GEMINI_API_KEY is missing")

        self.client = client or genai.Client(api_key=api_key)
        self.model = model or os.getenv("GENERATOR_MODEL", "gemini-2.0-flash")
        self.temperature = temperature
        self.timeout_sec = timeout_sec

    async def __call__(self, prompt: str) -> str:
        logger.info(f"[gemini] Generating with {self.model} ({len(prompt)} prompt chars)")
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=types.GenerateContentConfig(temperature=self.temperature),
                ),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"[gemini] Timed out after {self.timeout_sec}s")
            raise TransportFailure(f"Gemini call timed out after {self.timeout_sec}s") from e
        except Exception as e:
            err_str = (str(e) + " " + repr(e)).upper()
            if "429" in err_str or "RESOURCE_EXHAUSTED" in err_str:
                logger.warning(f"[gemini] Rate limited: {e}")
            else:
                logger.error(f"[gemini] Generation failed: {type(e).__name__}: {e}")
            raise TransportFailure(f"Gemini call failed: {type(e).__name__}: {e}") from e

        text = getattr(response, "text", None) or ""
        logger.info(f"[gemini] Received {len(text)} chars")
        return text
