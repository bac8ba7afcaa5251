"""Article summaries through the OpenRouter chat-completion API."""

from __future__ import annotations

import logging
from typing import List, Optional

import openai
from openai import OpenAI

from .exceptions import MissingCredential, TransportFailure
from .models import CustomPrompt

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "ReadLater App"
APP_REFERER = "https://github.com/read-later"
DEFAULT_MODEL = "anthropic/claude-3-haiku"
DEFAULT_TIMEOUT = 60.0
NO_SUMMARY = "No summary generated"

DEFAULT_PROMPT = (
    "Please provide a comprehensive summary of the following article. Focus on "
    "the main points, key insights, and important details. Make the summary "
    "clear and well-structured:\n\n"
)

AVAILABLE_MODELS = [
    {"id": "anthropic/claude-3-haiku", "name": "Claude 3 Haiku"},
    {"id": "openai/gpt-3.5-turbo", "name": "GPT-3.5 Turbo"},
    {"id": "openai/gpt-4", "name": "GPT-4"},
    {"id": "meta-llama/llama-2-70b-chat", "name": "Llama 2 70B"},
]

DEFAULT_PROMPTS: List[CustomPrompt] = [
    CustomPrompt(id="default", name="Default Summary", content=DEFAULT_PROMPT),
    CustomPrompt(
        id="brief",
        name="Brief Summary",
        content="Provide a brief, concise summary of the following article in 2-3 sentences:\n\n",
    ),
    CustomPrompt(
        id="bullet-points",
        name="Bullet Points",
        content="Summarize the following article using bullet points to highlight the key information:\n\n",
    ),
    CustomPrompt(
        id="academic",
        name="Academic Analysis",
        content=(
            "Provide an academic-style analysis and summary of the following "
            "article, including methodology, findings, and implications:\n\n"
        ),
    ),
]


def build_client(api_key: str, timeout: float = DEFAULT_TIMEOUT) -> OpenAI:
    """Create an OpenAI-compatible client for the OpenRouter endpoint."""
    return OpenAI(
        api_key=api_key,
        base_url=OPENROUTER_BASE_URL,
        timeout=timeout,
        max_retries=0,
        default_headers={"HTTP-Referer": APP_REFERER, "X-Title": APP_TITLE},
    )


def summarize_text(
    content: str,
    api_key: str,
    model: str = DEFAULT_MODEL,
    prompt: Optional[str] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[OpenAI] = None,
) -> str:
    """Ask the model for a summary of ``content`` and return the text."""
    if not api_key:
        raise MissingCredential("API key is required")

    if client is None:
        client = build_client(api_key, timeout=timeout)

    prompt_text = prompt or DEFAULT_PROMPT
    logger.info(
        "Requesting summary from %s (key ending %s, %d chars)",
        model,
        api_key[-4:],
        len(content),
    )
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt_text + content}],
            temperature=0.7,
            max_tokens=1000,
        )
    except openai.APIStatusError as exc:
        reason = exc.response.reason_phrase or str(exc.status_code)
        raise TransportFailure(
            f"API request failed: {reason}", exc.status_code
        ) from exc
    except openai.APIConnectionError as exc:
        raise TransportFailure(f"API request failed: {exc}") from exc

    choices = completion.choices or []
    summary = choices[0].message.content if choices else None
    if not summary:
        logger.warning("Model %s returned an empty summary", model)
        return NO_SUMMARY
    logger.debug("Summary response: %s", summary)
    return summary
