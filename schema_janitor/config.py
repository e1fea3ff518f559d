"""Configuration management for Schema Janitor.

Loads environment variables (optionally from a .env file) and provides
centralized config access. CLI options take precedence over these values.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

__version__ = "1.0.0"

VALID_MODES = ("tiered", "strict")


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize config by loading a .env file.

        Args:
            env_path: Explicit .env location (defaults to ./.env)
        """
        if env_path is None:
            env_path = Path.cwd() / ".env"
        load_dotenv(env_path)

        self._validate_required()

    def _validate_required(self):
        """Validate environment values that have a closed set of choices.

        Raises:
            ValueError: If SCHEMA_JANITOR_MODE is not a known analysis mode
        """
        if self.mode not in VALID_MODES:
            raise ValueError(
                f"SCHEMA_JANITOR_MODE must be one of {', '.join(VALID_MODES)}, "
                f"got '{self.mode}'."
            )

    @property
    def server_path(self) -> Path:
        """Server project root (default ../server)."""
        return Path(os.getenv("SCHEMA_JANITOR_SERVER_PATH", "../server"))

    @property
    def client_path(self) -> Path:
        """Client project root (default ../client)."""
        return Path(os.getenv("SCHEMA_JANITOR_CLIENT_PATH", "../client"))

    @property
    def schema_path(self) -> Path:
        """Get Prisma schema location.

        Priority:
        1. SCHEMA_JANITOR_SCHEMA_PATH environment variable
        2. <server_path>/prisma/schema.prisma

        Returns:
            Path to the schema file
        """
        explicit = os.getenv("SCHEMA_JANITOR_SCHEMA_PATH")
        if explicit:
            return Path(explicit)
        return self.server_path / "prisma" / "schema.prisma"

    @property
    def mode(self) -> str:
        """Analysis mode: 'tiered' (five risk levels) or 'strict' (binary)."""
        return os.getenv("SCHEMA_JANITOR_MODE", "tiered").strip().lower()

    @property
    def report_path(self) -> Path:
        """Where `audit --export` writes the JSON report."""
        return Path(os.getenv("SCHEMA_JANITOR_REPORT_PATH", "comprehensive-prisma-analysis.json"))

    @property
    def db_handles(self) -> list[str]:
        """Get the ORM client variable names used in database calls.

        Returns:
            List of identifiers, e.g. ['prisma', 'db']
        """
        raw = os.getenv("SCHEMA_JANITOR_DB_HANDLES", "prisma")
        handles = [h.strip() for h in raw.split(",") if h.strip()]
        return handles or ["prisma"]


# Lazily created shared instance
_config = None


def get_config() -> Config:
    """Get or create the shared Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
