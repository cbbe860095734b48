"""Turn-level façade over sessions, timers, commands and recovery.

Inbound text is debounced per user and then handled as one turn inside the
user's lane: blacklist check, restart keyword, finalized-order follow-up,
idle timers, onboarding, completion call, directive dispatch and, when the
model confirms too early, the recovery protocol. Replies go out through the
transport; every entry point returns a TurnResult.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from models.command_models import Command, CommandKind
from models.session_models import Session
from models.turn_models import TurnResult, TurnStatus
from services.catalog.catalog_service import CatalogError, CatalogService
from services.commands import codec, validator
from services.commands.dispatcher import CommandDispatcher
from services.commands.recovery import RecoveryProtocol
from services.conversation import messages
from services.conversation.blacklist import Blacklist
from services.conversation.message_queue import MessageQueue
from services.conversation.session_store import SessionStore
from services.conversation.timers import IdleTimers, TimerHandle
from services.conversation.user_lanes import UserLanes
from services.files.file_analyzer import FileAnalysisError, FileAnalyzer
from services.openai import prompts
from services.openai.completion_service import CompletionService
from utils.settings import OrchestratorSettings

LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
	async def send(self, user_id: str, text: str) -> None:
		...


class ConversationOrchestrator:
	"""Own the per-user conversation cycle for every connected customer."""

	def __init__(
		self,
		store: SessionStore,
		catalog: CatalogService,
		completion: CompletionService,
		transport: Transport,
		settings: OrchestratorSettings,
		file_analyzer: Optional[FileAnalyzer] = None,
		lanes: Optional[UserLanes] = None,
		blacklist: Optional[Blacklist] = None,
	) -> None:
		self.store = store
		self.catalog = catalog
		self.completion = completion
		self.transport = transport
		self.settings = settings
		self.file_analyzer = file_analyzer or FileAnalyzer()
		self.lanes = lanes or UserLanes()
		self.queue = MessageQueue(settings.message_gap_seconds, self.lanes)
		self.idle_timers = IdleTimers(settings.idle_warning_seconds, settings.idle_timeout_seconds, self.lanes)
		self.blacklist = blacklist or Blacklist()
		self.blacklist.on_evict = self._on_blacklist_evicted
		self.dispatcher = CommandDispatcher(store, catalog, settings)
		self.recovery = RecoveryProtocol(completion, self.dispatcher, store, self.build_system_prompt, settings)
		self._promos: Dict[str, TimerHandle] = {}

	# ----- entry points -------------------------------------------------

	def handle_incoming(self, user_id: str, text: str, display_name: Optional[str] = None) -> None:
		"""Buffer a message bubble; the joined bubbles become one turn."""

		async def _on_flush(joined: str) -> None:
			await self._turn(user_id, joined, display_name)

		self.queue.enqueue(user_id, text, _on_flush)

	async def handle_turn(self, user_id: str, text: str, display_name: Optional[str] = None) -> TurnResult:
		"""Run one turn immediately, bypassing the debounce queue."""
		async with self.lanes.hold(user_id):
			return await self._turn(user_id, text, display_name)

	async def handle_voice_note(self, user_id: str, transcript: str, display_name: Optional[str] = None) -> TurnResult:
		async with self.lanes.hold(user_id):
			if self.blacklist.is_blacklisted(user_id):
				return TurnResult(status=TurnStatus.IGNORED)
			await self._deliver(user_id, [messages.transcript_echo(transcript)])
			return await self._turn(user_id, transcript, display_name, voice=True)

	async def handle_attachment(self, user_id: str, file_path: str, display_name: Optional[str] = None) -> TurnResult:
		"""Analyze an uploaded design file and let the model comment on it."""
		async with self.lanes.hold(user_id):
			if self.blacklist.is_blacklisted(user_id):
				return TurnResult(status=TurnStatus.IGNORED)
			session = self.store.get(user_id)
			if session.finalized:
				return await self._human_follow_up(user_id)

			if session.file_upload_attempts >= self.settings.max_file_upload_attempts:
				LOGGER.info("Upload ceiling reached for %s", user_id)
				await self._deliver(user_id, [messages.MAX_UPLOAD_ATTEMPTS])
				return TurnResult(
					status=TurnStatus.TERMINATED,
					replies=[messages.MAX_UPLOAD_ATTEMPTS],
					phase=validator.current_phase(session, self.settings),
				)

			name = Path(file_path).name
			try:
				analysis = await self.file_analyzer.analyze(file_path)
			except FileAnalysisError as exc:
				LOGGER.error("File analysis failed for %s: %s", user_id, exc)
				await self.store.update(user_id, {"file_upload_attempts": session.file_upload_attempts + 1})
				await self._deliver(user_id, [messages.FILE_ANALYSIS_FAILED])
				return TurnResult(status=TurnStatus.FAILED, replies=[messages.FILE_ANALYSIS_FAILED])

			await self.store.update(user_id, {
				"draft_order": {
					"file_path": str(file_path),
					"file_analysis": analysis,
					"file_analysis_responded": False,
					"file_validation": {"is_valid": None, "reason": None},
				}
			})
			note = prompts.file_analysis_note(analysis, session.draft_order.file_validation_criteria, name)
			result = await self._turn(user_id, f"[Archivo enviado: {name}]", display_name, extra_instruction=note)
			if result.status in (TurnStatus.SUCCESS, TurnStatus.PARTIAL):
				await self.store.update(user_id, {"draft_order": {"file_analysis_responded": True}})
				result.phase = validator.current_phase(self.store.get(user_id), self.settings)
			return result

	async def reset(self, user_id: str) -> None:
		"""Forget everything about `user_id` (session, timers, queue, blacklist)."""
		async with self.lanes.hold(user_id):
			self._reset_state(user_id)

	async def shutdown(self) -> None:
		self.queue.close()
		self.idle_timers.close()
		for handle in self._promos.values():
			handle.cancel()
		self._promos.clear()
		self.lanes.cancel_all()
		await self.lanes.drain()

	def build_system_prompt(self, session: Session) -> str:
		return prompts.system_prompt(
			self.catalog.get_services(),
			self.catalog.additional_info,
			session.draft_order,
			self.settings.measured_categories,
		)

	# ----- turn cycle (caller holds the user's lane) ----------------------

	async def _turn(
		self,
		user_id: str,
		text: str,
		display_name: Optional[str],
		voice: bool = False,
		extra_instruction: Optional[str] = None,
	) -> TurnResult:
		if self.blacklist.is_blacklisted(user_id):
			return TurnResult(status=TurnStatus.IGNORED)

		text = (text or "").strip()
		if text.casefold() == self.settings.restart_keyword.casefold():
			self._reset_state(user_id, preserve_onboarding=True)
			await self._deliver(user_id, [messages.WELCOME_BACK])
			return TurnResult(status=TurnStatus.SUCCESS, replies=[messages.WELCOME_BACK])

		session = self.store.get(user_id)
		if session.finalized:
			return await self._human_follow_up(user_id)

		self._arm_idle_timers(user_id)
		snapshot = self.store.snapshot(user_id)
		try:
			result = await self._converse(session, text, display_name, voice, extra_instruction)
		except Exception as exc:
			LOGGER.error("Turn failed for %s: %s", user_id, exc, exc_info=True)
			self.store.restore(user_id, snapshot)
			reply = messages.ORDER_SAVE_FAILED if isinstance(exc, CatalogError) else messages.UNEXPECTED_ERROR
			await self._deliver(user_id, [reply])
			return TurnResult(status=TurnStatus.FAILED, replies=[reply])

		await self._deliver(user_id, result.replies)
		return result

	async def _converse(
		self,
		session: Session,
		text: str,
		display_name: Optional[str],
		voice: bool,
		extra_instruction: Optional[str],
	) -> TurnResult:
		user_id = session.user_id
		replies: List[str] = []
		if not session.initial_messages_sent:
			replies.extend(self.settings.welcome_messages or (messages.DEFAULT_WELCOME,))
			await self.store.update(user_id, {"initial_messages_sent": True})

		prefix = "Transcripción de audio: " if voice else ""
		self.store.append_history(user_id, "user", prefix + text)

		ai_text = await self.completion.complete(
			self.build_system_prompt(session),
			self.store.history_for_prompt(user_id),
			extra_instruction,
		)
		LOGGER.info("Assistant reply for %s: %s", user_id, ai_text)

		commands = codec.extract_commands(ai_text)
		prose = codec.strip_commands(ai_text)
		extra_replies: List[str] = []
		status = TurnStatus.SUCCESS
		recovery_tier: Optional[int] = None
		answer: List[str] = [prose] if prose else []

		for command in commands:
			if command.kind in (CommandKind.REQUEST_HUMAN, CommandKind.REPORT_ABUSE):
				return await self._terminate(user_id, command, commands, replies)

			result = await self.dispatcher.apply(session, command, display_name)
			if command.kind is not CommandKind.CONFIRM_ORDER:
				data = result.data or {}
				if data.get("reply"):
					extra_replies.append(data["reply"])
				continue

			if result.error == "order_incomplete":
				outcome = await self.recovery.run(session, text, result.data["missing_fields"])
				answer = outcome.replies
				extra_replies = []
				status = TurnStatus.PARTIAL
				recovery_tier = outcome.tier
				break
			if result.ok:
				answer = list(result.data["replies"])
				extra_replies = []
				status = TurnStatus.FINALIZED
				self._after_finalize(user_id)
				break

		replies.extend(answer)
		replies.extend(extra_replies)
		if answer:
			self.store.append_history(user_id, "assistant", "\n".join(answer))
		if not session.has_interacted:
			await self.store.update(user_id, {"has_interacted": True})
		session.touch()

		return TurnResult(
			status=status,
			replies=replies,
			commands=commands,
			phase=validator.current_phase(session, self.settings),
			recovery_tier=recovery_tier,
		)

	async def _terminate(self, user_id: str, command: Command, commands: List[Command], replies: List[str]) -> TurnResult:
		if command.kind is CommandKind.REQUEST_HUMAN:
			duration, notice = self.settings.human_blacklist_seconds, messages.HUMAN_REQUESTED
		else:
			duration, notice = self.settings.abuse_blacklist_seconds, messages.ABUSE_DETECTED
		self._reset_state(user_id)
		self.blacklist.add(user_id, duration)
		LOGGER.info("%s for %s; blacklisted for %.0f seconds", command.kind.value, user_id, duration)
		return TurnResult(status=TurnStatus.TERMINATED, replies=replies + [notice], commands=commands)

	async def _human_follow_up(self, user_id: str) -> TurnResult:
		LOGGER.info("Order already confirmed for %s; routing to human follow-up", user_id)
		self.idle_timers.clear(user_id)
		self.blacklist.add(user_id, self.settings.human_blacklist_seconds)
		await self._deliver(user_id, [messages.HUMAN_FOLLOW_UP])
		return TurnResult(status=TurnStatus.TERMINATED, replies=[messages.HUMAN_FOLLOW_UP])

	def _after_finalize(self, user_id: str) -> None:
		self.idle_timers.clear(user_id)
		self.blacklist.add(user_id, self.settings.blacklist_seconds)
		if self.settings.promo_message:
			self._schedule_promo(user_id, self.settings.promo_message)

	# ----- timers and state --------------------------------------------

	def _arm_idle_timers(self, user_id: str) -> None:
		async def _warn() -> None:
			if self.blacklist.is_blacklisted(user_id):
				return
			await self._deliver(user_id, [messages.IDLE_WARNING])

		async def _expire() -> None:
			if self.blacklist.is_blacklisted(user_id):
				return
			LOGGER.info("Idle timeout for %s", user_id)
			self._reset_state(user_id)
			await self._deliver(user_id, [messages.IDLE_TIMEOUT])

		self.idle_timers.arm(user_id, _warn, _expire)

	def _schedule_promo(self, user_id: str, text: str) -> None:
		previous = self._promos.pop(user_id, None)
		if previous is not None:
			previous.cancel()

		async def _send_promo() -> None:
			self._promos.pop(user_id, None)
			await self._deliver(user_id, [text])
			LOGGER.info("Promotional message sent to %s", user_id)

		self._promos[user_id] = TimerHandle(
			user_id, self.settings.promo_delay_seconds, _send_promo, self.lanes, name="promo"
		)

	def _reset_state(self, user_id: str, preserve_onboarding: bool = False) -> None:
		self.store.reset(user_id, preserve_onboarding=preserve_onboarding)
		self.idle_timers.clear(user_id)
		self.queue.clear(user_id)
		self.blacklist.remove(user_id)
		promo = self._promos.pop(user_id, None)
		if promo is not None:
			promo.cancel()
		LOGGER.info("Conversation reset for %s", user_id)

	def _on_blacklist_evicted(self, user_id: str) -> None:
		self.store.reset(user_id)
		self.idle_timers.clear(user_id)

	async def _deliver(self, user_id: str, replies: List[str]) -> None:
		for reply in replies:
			if not reply:
				continue
			try:
				await self.transport.send(user_id, reply)
			except Exception as exc:
				LOGGER.error("Could not deliver reply to %s: %s", user_id, exc)
				return
