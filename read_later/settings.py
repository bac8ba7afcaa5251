"""Persisted summarizer preferences."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import asdict
from typing import List, Optional

from .models import CustomPrompt
from .store import ArticleStore
from .summaries import DEFAULT_MODEL, DEFAULT_PROMPTS

logger = logging.getLogger(__name__)

API_KEY = "openrouter_api_key"
PREFERRED_MODEL = "preferred_ai_model"
SELECTED_PROMPT = "selected_prompt"
CUSTOM_PROMPTS = "custom_prompts"

API_KEY_ENV = "OPENROUTER_API_KEY"


class SummarySettings:
    """Typed access to the summarizer entries in the store's settings table."""

    def __init__(self, store: ArticleStore):
        self.store = store

    @property
    def api_key(self) -> str:
        stored = self.store.get_setting(API_KEY, "")
        return stored or os.environ.get(API_KEY_ENV, "")

    @api_key.setter
    def api_key(self, value: str) -> None:
        self.store.set_setting(API_KEY, value)

    @property
    def preferred_model(self) -> str:
        return self.store.get_setting(PREFERRED_MODEL) or DEFAULT_MODEL

    @preferred_model.setter
    def preferred_model(self, value: str) -> None:
        self.store.set_setting(PREFERRED_MODEL, value)

    @property
    def selected_prompt(self) -> str:
        return self.store.get_setting(SELECTED_PROMPT) or "default"

    @selected_prompt.setter
    def selected_prompt(self, value: str) -> None:
        self.store.set_setting(SELECTED_PROMPT, value)

    @property
    def custom_prompts(self) -> List[CustomPrompt]:
        saved = self.store.get_setting(CUSTOM_PROMPTS, [])
        return [CustomPrompt(**item) for item in saved]

    @custom_prompts.setter
    def custom_prompts(self, prompts: List[CustomPrompt]) -> None:
        self.store.set_setting(CUSTOM_PROMPTS, [asdict(prompt) for prompt in prompts])

    def add_custom_prompt(self, name: str, content: str) -> CustomPrompt:
        """Store a new prompt template; blank names or bodies are rejected."""
        name = name.strip()
        if not name or not content.strip():
            raise ValueError("Prompt name and content are required.")

        prompt = CustomPrompt(id=uuid.uuid4().hex, name=name, content=content)
        self.custom_prompts = self.custom_prompts + [prompt]
        logger.info("Saved custom prompt '%s'", name)
        return prompt

    def all_prompts(self) -> List[CustomPrompt]:
        return list(DEFAULT_PROMPTS) + self.custom_prompts

    def resolve_prompt(self, prompt_id: Optional[str] = None) -> Optional[str]:
        """Return the text of the given (or selected) prompt, if it exists."""
        wanted = prompt_id or self.selected_prompt
        for prompt in self.all_prompts():
            if prompt.id == wanted:
                return prompt.content
        logger.debug("Prompt %r not found; using the default prompt", wanted)
        return None
