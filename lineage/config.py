"""Configuration management for the lineage CLI.

Loads environment variables and provides centralized config access. The
analysis core never reads configuration; only the CLI does.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

__version__ = "0.3.0"

SUPPORTED_LANGUAGES = ('javascript', 'typescript', 'tsx')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self):
        """Initialize config by loading .env file."""
        project_root = Path(__file__).parent.parent
        load_dotenv(project_root / ".env")

        self._validate()

    def _validate(self):
        """Validate environment-supplied values.

        Raises:
            ValueError: If LINEAGE_LANGUAGE or LINEAGE_LOG_LEVEL is invalid
        """
        if self.default_language not in SUPPORTED_LANGUAGES:
            raise ValueError(
                f"LINEAGE_LANGUAGE must be one of {', '.join(SUPPORTED_LANGUAGES)}, "
                f"got '{self.default_language}'"
            )
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"LINEAGE_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'"
            )

    @property
    def log_level(self) -> str:
        """Get log level name (default WARNING)."""
        return os.getenv("LINEAGE_LOG_LEVEL", "WARNING").upper()

    @property
    def default_language(self) -> str:
        """Get language used when a file extension does not decide it.

        Returns:
            One of SUPPORTED_LANGUAGES (default 'javascript')
        """
        return os.getenv("LINEAGE_LANGUAGE", "javascript").lower()

    @property
    def show_unresolved(self) -> bool:
        """Whether reports list unresolved references by default."""
        return os.getenv("LINEAGE_SHOW_UNRESOLVED", "").lower() in ("1", "true", "yes", "on")


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config():
    """Drop the cached Config so the next get_config() re-reads the environment."""
    global _config
    _config = None
