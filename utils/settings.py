"""Runtime settings for the order orchestrator, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

DEFAULT_MEASURED_CATEGORIES = (
    "Telas PVC",
    "Banderas",
    "Adhesivos",
    "Adhesivo Vehicular",
    "Back Light",
)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class OrchestratorSettings:
    """Tunable limits, durations, and paths.

    Durations are in seconds. `from_env()` reads them from the environment; every
    field also has a default so tests can build settings directly.
    """

    model: str = "gpt-4o-mini"
    max_output_tokens: int = 2000
    temperature: float = 0.5
    transcribe_model: str = "whisper-1"
    message_gap_seconds: float = 3.0
    idle_warning_seconds: float = 300.0
    idle_timeout_seconds: float = 600.0
    blacklist_seconds: float = 600.0
    human_blacklist_seconds: float = 3600.0
    abuse_blacklist_seconds: float = 86400.0
    history_word_limit: int = 1500
    max_file_upload_attempts: int = 3
    measured_categories: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_MEASURED_CATEGORIES))
    catalog_csv_path: Optional[Path] = None
    additional_info_path: Optional[Path] = None
    catalog_refresh_seconds: float = 3600.0
    session_max_idle_seconds: float = 3600.0
    upload_dir: Optional[Path] = None
    promo_message: Optional[str] = None
    promo_delay_seconds: float = 15.0
    timezone: str = "America/Santiago"
    restart_keyword: str = "bot"
    welcome_messages: Tuple[str, ...] = ()

    def is_measured(self, category: Optional[str]) -> bool:
        if not category:
            return False
        lowered = {value.casefold() for value in self.measured_categories}
        return category.casefold() in lowered

    @classmethod
    def from_env(cls) -> "OrchestratorSettings":
        """Build settings from environment variables (call after `load_dotenv`)."""
        catalog_path = os.getenv("CATALOG_CSV_PATH")
        info_path = os.getenv("ADDITIONAL_INFO_PATH")
        upload_dir = os.getenv("UPLOAD_DIR")
        if not upload_dir and os.getenv("DATABASE_DIR"):
            upload_dir = str(Path(os.environ["DATABASE_DIR"]).expanduser() / "uploads")
        welcome = os.getenv("WELCOME_MESSAGE")
        return cls(
            model=os.getenv("OPENAI_MODEL", cls.model),
            max_output_tokens=_env_int("OPENAI_MAX_OUTPUT_TOKENS", cls.max_output_tokens),
            temperature=_env_float("OPENAI_TEMPERATURE", cls.temperature),
            transcribe_model=os.getenv("TRANSCRIBE_MODEL", cls.transcribe_model),
            message_gap_seconds=_env_float("MESSAGE_QUEUE_GAP_SECONDS", cls.message_gap_seconds),
            idle_warning_seconds=_env_float("IDLE_WARNING_SECONDS", cls.idle_warning_seconds),
            idle_timeout_seconds=_env_float("IDLE_TIMEOUT_SECONDS", cls.idle_timeout_seconds),
            blacklist_seconds=_env_float("BLACKLIST_SECONDS", cls.blacklist_seconds),
            human_blacklist_seconds=_env_float("HUMAN_BLACKLIST_SECONDS", cls.human_blacklist_seconds),
            abuse_blacklist_seconds=_env_float("ABUSE_BLACKLIST_SECONDS", cls.abuse_blacklist_seconds),
            history_word_limit=_env_int("HISTORY_WORD_LIMIT", cls.history_word_limit),
            max_file_upload_attempts=_env_int("MAX_FILE_UPLOAD_ATTEMPTS", cls.max_file_upload_attempts),
            measured_categories=frozenset(_env_list("MEASURED_CATEGORIES", DEFAULT_MEASURED_CATEGORIES)),
            catalog_csv_path=Path(catalog_path).expanduser() if catalog_path else None,
            additional_info_path=Path(info_path).expanduser() if info_path else None,
            catalog_refresh_seconds=_env_float("CATALOG_REFRESH_SECONDS", cls.catalog_refresh_seconds),
            session_max_idle_seconds=_env_float("SESSION_MAX_IDLE_SECONDS", cls.session_max_idle_seconds),
            upload_dir=Path(upload_dir).expanduser() if upload_dir else None,
            promo_message=os.getenv("PROMO_MESSAGE") or None,
            promo_delay_seconds=_env_float("PROMO_DELAY_SECONDS", cls.promo_delay_seconds),
            timezone=os.getenv("TIMEZONE", cls.timezone),
            restart_keyword=os.getenv("RESTART_KEYWORD", cls.restart_keyword),
            welcome_messages=(welcome,) if welcome else (),
        )
