"""liftdiag configuration management.

Loads configuration from environment variables with sensible defaults.
The correlation engine itself never reads the environment: callers build an
EngineConfig (directly or via AppConfig.from_env) and pass it in.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

# Pattern frequency can be raised but never lowered below this floor
MIN_PATTERN_FREQUENCY_FLOOR = 2


@dataclass(frozen=True)
class EngineConfig:
    """Correlation thresholds and validation policy."""

    strict_validation: bool = False  # Raise on evidence integrity violations
    breakdown_link_days: int = 2
    issue_visit_days: int = 1
    min_pattern_frequency: int = MIN_PATTERN_FREQUENCY_FLOOR
    component_match_threshold: int = 85  # RapidFuzz token_set_ratio
    ignored_problem_codes: tuple[str, ...] = ("signatureNotNeeded",)
    keywords_path: Path | None = None

    def __post_init__(self) -> None:
        if self.min_pattern_frequency < MIN_PATTERN_FREQUENCY_FLOOR:
            object.__setattr__(
                self, "min_pattern_frequency", MIN_PATTERN_FREQUENCY_FLOOR
            )
        if self.breakdown_link_days < 0:
            raise ValueError("breakdown_link_days must be non-negative")
        if self.issue_visit_days < 0:
            raise ValueError("issue_visit_days must be non-negative")
        if not 0 <= self.component_match_threshold <= 100:
            raise ValueError("component_match_threshold must be between 0 and 100")


@dataclass
class RetrievalConfig:
    """Record retrieval defaults for the collection boundary."""

    default_days_back: int = 90
    records_dir: Path | None = None


@dataclass
class AppConfig:
    """Root application configuration."""

    log_level: str = "INFO"
    json_logs: bool = False

    engine: EngineConfig = field(default_factory=EngineConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Optional (with defaults):
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - JSON_LOGS: Emit JSON logs (default: false)
        - STRICT_VALIDATION: Treat integrity violations as fatal (default: false)
        - BREAKDOWN_LINK_DAYS, ISSUE_VISIT_DAYS, MIN_PATTERN_FREQUENCY,
          COMPONENT_MATCH_THRESHOLD: Correlation tunables
        - IGNORED_PROBLEM_CODES: Comma separated maintenance problem codes to drop
        - KEYWORDS_CONFIG: Path to keywords.yaml
        - DEFAULT_DAYS_BACK, RECORDS_DIR: Retrieval defaults

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        keywords_env = os.getenv("KEYWORDS_CONFIG")
        if keywords_env:
            keywords_path: Path | None = Path(keywords_env)
        else:
            default_keywords = _config_root() / "keywords.yaml"
            keywords_path = default_keywords if default_keywords.exists() else None

        ignored = os.getenv("IGNORED_PROBLEM_CODES")
        ignored_codes = (
            tuple(code.strip() for code in ignored.split(",") if code.strip())
            if ignored is not None
            else ("signatureNotNeeded",)
        )

        records_dir = os.getenv("RECORDS_DIR")

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("JSON_LOGS", "false").lower() == "true",
            engine=EngineConfig(
                strict_validation=os.getenv("STRICT_VALIDATION", "false").lower()
                == "true",
                breakdown_link_days=int(os.getenv("BREAKDOWN_LINK_DAYS", "2")),
                issue_visit_days=int(os.getenv("ISSUE_VISIT_DAYS", "1")),
                min_pattern_frequency=int(os.getenv("MIN_PATTERN_FREQUENCY", "2")),
                component_match_threshold=int(
                    os.getenv("COMPONENT_MATCH_THRESHOLD", "85")
                ),
                ignored_problem_codes=ignored_codes,
                keywords_path=keywords_path,
            ),
            retrieval=RetrievalConfig(
                default_days_back=int(os.getenv("DEFAULT_DAYS_BACK", "90")),
                records_dir=Path(records_dir) if records_dir else None,
            ),
        )

    @property
    def config_root(self) -> Path:
        """Root directory for configuration files (keywords YAML)."""
        return _config_root()


def _config_root() -> Path:
    return Path(__file__).parent.parent / "config"


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Used by the CLI only; library callers pass EngineConfig explicitly.
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached AppConfig (tests change the environment between cases)."""
    global _config
    _config = None
