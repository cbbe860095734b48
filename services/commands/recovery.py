"""Fallbacks for a confirmation the draft order cannot honour yet.

When the model emits a confirmation while fields are still missing, its
reply is discarded and one of three tiers answers instead:

1. re-extract directives from the raw user message, apply them, and ask the
   model for a short natural-language follow-up;
2. ask the model to request exactly the missing information;
3. send a fixed notice listing what is missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from models.command_models import Command
from models.session_models import Session
from services.commands import codec, validator
from services.commands.dispatcher import CommandDispatcher
from services.conversation import messages
from services.conversation.session_store import SessionStore
from services.openai import prompts
from services.openai.completion_service import CompletionError, CompletionService
from utils.settings import OrchestratorSettings

LOGGER = logging.getLogger(__name__)

PromptBuilder = Callable[[Session], str]


@dataclass
class RecoveryOutcome:
    tier: int
    replies: List[str] = field(default_factory=list)
    applied: List[Command] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)


class RecoveryProtocol:
    def __init__(
        self,
        completion: CompletionService,
        dispatcher: CommandDispatcher,
        store: SessionStore,
        prompt_builder: PromptBuilder,
        settings: OrchestratorSettings,
    ) -> None:
        self._completion = completion
        self._dispatcher = dispatcher
        self._store = store
        self._prompt_builder = prompt_builder
        self._settings = settings

    async def run(self, session: Session, user_message: str, missing: List[str]) -> RecoveryOutcome:
        """Answer a premature confirmation; never raises for completion failures."""
        LOGGER.info("Recovering premature confirmation for %s; missing %s", session.user_id, missing)

        applied = await self._reextract(session, user_message, missing)
        if applied:
            remaining = validator.missing_fields(session, self._settings)
            reply = await self._continuation(session, remaining, applied)
            return RecoveryOutcome(tier=1, replies=[reply], applied=applied, missing_fields=remaining)

        reply = await self._guided(session, missing)
        if reply:
            return RecoveryOutcome(tier=2, replies=[reply], missing_fields=missing)

        return RecoveryOutcome(
            tier=3,
            replies=[messages.missing_info_notice(validator.describe_missing(missing))],
            missing_fields=missing,
        )

    async def _reextract(self, session: Session, user_message: str, missing: List[str]) -> List[Command]:
        if not user_message.strip():
            return []
        try:
            text = await self._completion.complete(
                self._prompt_builder(session),
                [{"role": "user", "content": user_message}],
                prompts.extraction_instruction(validator.describe_missing(missing)),
            )
        except CompletionError as exc:
            LOGGER.warning("Re-extraction failed for %s: %s", session.user_id, exc)
            return []

        applied: List[Command] = []
        for command in codec.extract_commands(text):
            if command.is_terminal:
                continue
            result = await self._dispatcher.apply(session, command)
            if result.order_updated:
                applied.append(command)
        LOGGER.info("Re-extraction applied %d commands for %s", len(applied), session.user_id)
        return applied

    async def _continuation(self, session: Session, remaining: List[str], applied: List[Command]) -> str:
        labels = validator.describe_missing(remaining)
        try:
            text = await self._completion.complete(
                self._prompt_builder(session),
                self._store.history_for_prompt(session.user_id),
                prompts.continuation_instruction(labels, applied),
            )
        except CompletionError as exc:
            LOGGER.warning("Continuation reply failed for %s: %s", session.user_id, exc)
            return messages.missing_info_notice(labels)
        # Directives in the continuation are never applied.
        reply = codec.strip_commands(text)
        return reply or messages.missing_info_notice(labels)

    async def _guided(self, session: Session, missing: List[str]) -> Optional[str]:
        try:
            text = await self._completion.complete(
                self._prompt_builder(session),
                self._store.history_for_prompt(session.user_id),
                prompts.guided_instruction(session.draft_order, validator.describe_missing(missing)),
            )
        except CompletionError as exc:
            LOGGER.warning("Guided re-evaluation failed for %s: %s", session.user_id, exc)
            return None
        return codec.strip_commands(text) or None
