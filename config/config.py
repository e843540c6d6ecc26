import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from utils.logger import get_logger

logger = get_logger(__name__)


class SearchPreference(Enum):
    """User-level choice of image sources."""

    SMART = "smart"
    BOTH = "both"
    ENCYCLOPEDIC = "encyclopedic"
    WEB = "web"

    @classmethod
    def parse(cls, value: str | None) -> "SearchPreference":
        raw = (value or "").strip().lower()
        # Older settings files use the backend names
        aliases = {"wiki": "encyclopedic", "google": "web"}
        raw = aliases.get(raw, raw)
        for member in cls:
            if member.value == raw:
                return member
        return cls.SMART


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}; using {default}")
        return default


@dataclass(frozen=True)
class IllustrationConfig:
    """
    Immutable settings for one pipeline run.

    Components receive this value explicitly; nothing reads global settings at call time.
    """

    enabled: bool = False
    max_queries: int = 2
    min_message_length: int = 80
    candidates_per_source: int = 4
    search_preference: SearchPreference = SearchPreference.SMART
    auto_mode: bool = True
    show_caption: bool = True

    # OpenAI-compatible completion backend
    ai_base_url: str = ""
    ai_api_key: str = ""
    ai_model: str = ""

    # Serper.dev (Google Images)
    serper_api_key: str = ""

    request_timeout_s: float = 20.0
    stage_timeout_s: float = 90.0
    settle_delay_s: float = 0.8
    restore_delay_s: float = 1.2

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "IllustrationConfig":
        """
        Build configuration from environment variables (and a .env file if present).

        Variables use the AUTO_ILLUST_ prefix, e.g. AUTO_ILLUST_ENABLED=true,
        AUTO_ILLUST_AI_MODEL=gpt-4o-mini, AUTO_ILLUST_SERPER_API_KEY=...
        """
        env_path = Path(env_file) if env_file else Path(__file__).parent.parent / ".env"
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

        return cls(
            enabled=_env_bool("AUTO_ILLUST_ENABLED", False),
            max_queries=_env_int("AUTO_ILLUST_MAX_QUERIES", 2),
            min_message_length=_env_int("AUTO_ILLUST_MIN_MESSAGE_LENGTH", 80),
            candidates_per_source=_env_int("AUTO_ILLUST_CANDIDATES_PER_SOURCE", 4),
            search_preference=SearchPreference.parse(os.getenv("AUTO_ILLUST_SEARCH_PREFERENCE")),
            auto_mode=_env_bool("AUTO_ILLUST_AUTO_MODE", True),
            show_caption=_env_bool("AUTO_ILLUST_SHOW_CAPTION", True),
            ai_base_url=os.getenv("AUTO_ILLUST_AI_BASE_URL", ""),
            ai_api_key=os.getenv("AUTO_ILLUST_AI_API_KEY", ""),
            ai_model=os.getenv("AUTO_ILLUST_AI_MODEL", ""),
            serper_api_key=os.getenv("AUTO_ILLUST_SERPER_API_KEY", ""),
            request_timeout_s=_env_float("AUTO_ILLUST_REQUEST_TIMEOUT_S", 20.0),
            stage_timeout_s=_env_float("AUTO_ILLUST_STAGE_TIMEOUT_S", 90.0),
            settle_delay_s=_env_float("AUTO_ILLUST_SETTLE_DELAY_S", 0.8),
            restore_delay_s=_env_float("AUTO_ILLUST_RESTORE_DELAY_S", 1.2),
        )

    def with_overrides(self, **changes) -> "IllustrationConfig":
        return replace(self, **changes)

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_base_url and self.ai_api_key and self.ai_model)

    @property
    def web_search_configured(self) -> bool:
        return bool(self.serper_api_key)

    def validate(self) -> bool:
        """
        Check that the settings can drive a pipeline run.

        Returns:
            bool: True if configuration is valid, False otherwise
        """
        problems = []
        if not self.ai_configured:
            problems.append("AUTO_ILLUST_AI_BASE_URL, AUTO_ILLUST_AI_API_KEY and AUTO_ILLUST_AI_MODEL must all be set")
        if self.max_queries < 1:
            problems.append("AUTO_ILLUST_MAX_QUERIES must be at least 1")
        if self.candidates_per_source < 1:
            problems.append("AUTO_ILLUST_CANDIDATES_PER_SOURCE must be at least 1")
        if self.search_preference is SearchPreference.WEB and not self.web_search_configured:
            problems.append("search preference 'web' requires AUTO_ILLUST_SERPER_API_KEY")

        for problem in problems:
            logger.error(f"Configuration error: {problem}")
        return not problems

    def describe(self) -> str:
        """Short human-readable summary, never including secrets."""
        model = self.ai_model or "unset"
        web = "on" if self.web_search_configured else "off"
        mode = "auto" if self.auto_mode else "confirm"
        return f"model={model} preference={self.search_preference.value} web={web} mode={mode}"
