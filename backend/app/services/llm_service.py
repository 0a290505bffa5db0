"""LLM service for Google Gemini integration."""

import asyncio
import logging

from google import genai
from google.genai import types

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class LLMService:
    """Service for Google Gemini LLM operations."""

    def __init__(self):
        self.client = genai.Client(api_key=settings.gemini_api_key)
        self.model = settings.gemini_model

    async def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """Generate text completion using Gemini.

        Args:
            prompt: User prompt
            max_tokens: Maximum tokens to generate, defaults to the fix budget
            temperature: Sampling temperature (0-1)
            system_prompt: Optional system prompt

        Returns:
            Generated text
        """
        try:
            config = types.GenerateContentConfig(
                max_output_tokens=max_tokens or settings.fix_max_output_tokens,
                temperature=settings.fix_temperature if temperature is None else temperature,
                system_instruction=system_prompt,
            )

            response = await asyncio.to_thread(
                self.client.models.generate_content,
                model=self.model,
                contents=prompt,
                config=config,
            )
            return response.text or ""
        except Exception as e:
            logger.error(f"LLM generation failed: {e}")
            raise
