"""
Claude API service for model-backed wine extraction.

This module provides a small, robust interface to Anthropic's Claude API
used by the structured extraction strategy.

Key Features:
    - Async/await support for non-blocking operations
    - Exponential backoff retry logic with jitter
    - No retries on authentication or other client errors
    - Token usage logging
    - JSON extraction from fenced or chatty responses

Example:
    >>> async with ClaudeService() as service:
    ...     text = await service.complete(user_prompt, system=system_prompt)
"""

from __future__ import annotations

import asyncio
import random
import re
import time
from typing import Optional

import anthropic
from anthropic import APIError, APIStatusError, RateLimitError

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class ClaudeServiceError(Exception):
    """Base exception for Claude service errors."""
    pass


class MaxRetriesExceededError(ClaudeServiceError):
    """Raised when max retries are exceeded."""
    pass


# =============================================================================
# Utilities
# =============================================================================

def extract_json(text: str) -> str:
    """Extract JSON from text that may contain markdown or other content."""
    # Try to find JSON in code blocks first
    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    matches = re.findall(code_block_pattern, text)
    if matches:
        return matches[0].strip()

    # Try to find a raw JSON object
    json_pattern = r"(\{[\s\S]*\})"
    matches = re.findall(json_pattern, text)
    if matches:
        return max(matches, key=len)

    # A lone opening fence with no closing one
    return text.replace("```json", "").replace("```", "").strip()


def calculate_backoff(attempt: int, base: float = 1.0) -> float:
    """Calculate exponential backoff with jitter."""
    backoff = base * (2 ** attempt)
    jitter = random.uniform(0, backoff * 0.1)
    return min(backoff + jitter, 60)


# =============================================================================
# Main Service Class
# =============================================================================

class ClaudeService:
    """
    Claude API service with bounded retries.

    Example:
        >>> service = ClaudeService()
        >>> async with service:
        ...     text = await service.complete("Extract...", system="You are...")

    Attributes:
        settings: Application settings
        client: Anthropic API client
        max_retries: Attempts per completion
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
        max_retries: Optional[int] = None,
    ):
        """
        Initialize the Claude service.

        Args:
            settings: Application settings instance
            api_key: Override API key (uses settings if not provided)
            client: Pre-built Anthropic client
            max_retries: Maximum attempts for failed requests
        """
        self.settings = settings or get_settings()
        self.max_retries = max_retries or self.settings.max_retries

        if client is None:
            if api_key is None and self.settings.anthropic_api_key is None:
                raise ClaudeServiceError("Anthropic API key not configured (ANTHROPIC_API_KEY)")
            # The retry loop below owns retries
            client = anthropic.AsyncAnthropic(
                api_key=api_key or self.settings.anthropic_api_key.get_secret_value(),
                base_url=self.settings.anthropic_base_url,
                timeout=self.settings.extraction_timeout_seconds,
                max_retries=0,
            )
        self.client = client

        logger.info(
            "ClaudeService initialized",
            model=self.settings.claude_model,
            max_retries=self.max_retries,
        )

    async def __aenter__(self) -> "ClaudeService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the client connection."""
        await self.client.close()

    # =========================================================================
    # Core API Methods
    # =========================================================================

    async def complete(
        self,
        prompt: str,
        system: str = "",
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send a single-turn prompt and return the text response.

        Args:
            prompt: User message content
            system: System prompt
            temperature: Sampling temperature (defaults to EXTRACTION_TEMPERATURE)
            max_tokens: Maximum tokens in response

        Returns:
            Response text

        Raises:
            ClaudeServiceError: On non-retryable API errors
            MaxRetriesExceededError: When retryable errors persist
        """
        max_tokens = max_tokens or self.settings.claude_max_tokens
        if temperature is None:
            temperature = self.settings.extraction_temperature

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                response = await self.client.messages.create(
                    model=self.settings.claude_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                )

                elapsed = time.time() - start_time

                text_blocks = [
                    block.text for block in response.content
                    if getattr(block, "type", "text") == "text"
                ]
                if not text_blocks:
                    raise ClaudeServiceError("Empty response from Claude")

                logger.info(
                    "API call successful",
                    attempt=attempt + 1,
                    elapsed_seconds=f"{elapsed:.2f}",
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                )

                return "".join(text_blocks)

            except RateLimitError as e:
                last_error = e
                wait_time = calculate_backoff(attempt, base=5)
                logger.warning(
                    "Rate limit hit, backing off",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

            except APIStatusError as e:
                last_error = e
                if e.status_code >= 500:
                    # Server error - retry with backoff
                    wait_time = calculate_backoff(attempt)
                    logger.warning(
                        "Server error, retrying",
                        attempt=attempt + 1,
                        status_code=e.status_code,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                elif e.status_code == 401:
                    # Auth error - don't retry
                    logger.error("Authentication failed", error=str(e))
                    raise ClaudeServiceError(f"Authentication failed: {e}") from e
                else:
                    # Other client error
                    logger.error("API error", status_code=e.status_code, error=str(e))
                    raise ClaudeServiceError(f"API error: {e}") from e

            except APIError as e:
                last_error = e
                wait_time = calculate_backoff(attempt)
                logger.warning(
                    "API error, retrying",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

        # All retries exhausted
        logger.error(
            "Max retries exceeded",
            max_retries=self.max_retries,
            last_error=str(last_error),
        )
        raise MaxRetriesExceededError(
            f"Failed after {self.max_retries} attempts: {last_error}"
        )


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "ClaudeService",
    "ClaudeServiceError",
    "MaxRetriesExceededError",
    "extract_json",
    "calculate_backoff",
]
