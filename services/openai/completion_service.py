"""Chat completion helper using the OpenAI Responses API.

Sends the per-turn system prompt, the rolling conversation history and an
optional extra instruction, and returns the model's plain text answer.
"""

import logging
import time
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from services.openai.response_parser import extract_text, extract_usage
from utils.settings import OrchestratorSettings

LOGGER = logging.getLogger(__name__)


class CompletionError(RuntimeError):
    """Raised when the completion service fails or returns nothing usable."""


def _message(role: str, text: str) -> Dict[str, object]:
    # Assistant turns are replayed as model output, everything else as input.
    content_type = "output_text" if role == "assistant" else "input_text"
    return {"type": "message", "role": role, "content": [{"type": content_type, "text": text}]}


class CompletionService:
    """Produce the assistant's next reply for a conversation."""

    def __init__(self, client: AsyncOpenAI, settings: OrchestratorSettings) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.settings = settings

    async def complete(
        self,
        system_prompt: str,
        history: List[Dict[str, str]],
        extra_instruction: Optional[str] = None,
    ) -> str:
        """Return the model's reply text.

        Args:
            system_prompt: Instructions including catalog and draft state.
            history: Ordered `{role, content}` turns, oldest first.
            extra_instruction: Optional trailing system message for recovery prompts.

        Raises:
            CompletionError: On API failure or an empty answer.
        """
        start = time.time()
        messages = [_message("system", system_prompt)]
        messages.extend(_message(turn["role"], turn["content"]) for turn in history if turn.get("content"))
        if extra_instruction:
            messages.append(_message("system", extra_instruction))

        try:
            response = await self.client.responses.create(
                model=self.settings.model,
                input=messages,
                max_output_tokens=self.settings.max_output_tokens,
                temperature=self.settings.temperature,
            )
        except OpenAIError as exc:
            LOGGER.error("OpenAI Responses API error: %s", exc)
            raise CompletionError("Completion request failed") from exc

        text = extract_text(response).strip()
        usage = extract_usage(response)
        LOGGER.info(
            "Completion latency %.3fs (input_tokens=%s, output_tokens=%s)",
            time.time() - start,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        if not text:
            raise CompletionError("Completion response did not include text.")
        return text
