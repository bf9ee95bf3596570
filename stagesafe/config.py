"""Configuration management for stagesafe."""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from git import Actor

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
REMOTE_URL_SCHEMES = ("http://", "https://", "git@", "ssh://", "file://")


@dataclass
class SyncConfig:
    """Configuration of one synchronized working copy, validated on creation."""

    # Repository
    repo_dir: Path = field(default_factory=Path.cwd)
    default_ref: str = "main"
    remote_name: str = "origin"
    remote_url: Optional[str] = None

    # Credentials; never logged
    token: Optional[str] = field(default=None, repr=False)

    # Commit identity; git's configured identity when unset
    author_name: Optional[str] = None
    author_email: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    # Assignment service
    api_host: str = "https://hexlet.io"
    token_check_url: Optional[str] = None
    http_timeout: float = 30.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.repo_dir, str):
            self.repo_dir = Path(self.repo_dir)
        self.repo_dir = self.repo_dir.expanduser()

        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")

        if not self.default_ref.strip():
            raise ValueError("default_ref must not be empty")

        if not self.remote_name.strip():
            raise ValueError("remote_name must not be empty")

        if not self.api_host.startswith(("http://", "https://")):
            raise ValueError(f"api_host must be an http(s) URL: {self.api_host}")

        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive")

        if self.token_check_url is None:
            self.token_check_url = f"{self.api_host.rstrip('/')}/api/user/assignment_token/check"

    @property
    def author(self) -> Optional[Actor]:
        """Identity used for commits, or None to use git's configuration."""
        if not self.author_name or not self.author_email:
            return None
        return Actor(self.author_name, self.author_email)


def load_configuration() -> SyncConfig:
    """Load configuration from environment variables, reading a .env file first if present."""
    load_dotenv()
    try:
        return SyncConfig(
            repo_dir=Path(os.getenv("STAGESAFE_REPO_DIR", str(Path.cwd()))),
            default_ref=os.getenv("STAGESAFE_DEFAULT_REF", "main"),
            remote_name=os.getenv("STAGESAFE_REMOTE_NAME", "origin"),
            remote_url=os.getenv("STAGESAFE_REMOTE_URL"),
            token=os.getenv("STAGESAFE_TOKEN"),
            author_name=os.getenv("STAGESAFE_AUTHOR_NAME"),
            author_email=os.getenv("STAGESAFE_AUTHOR_EMAIL"),
            log_level=os.getenv("STAGESAFE_LOG_LEVEL", "INFO"),
            api_host=os.getenv("STAGESAFE_API_HOST", "https://hexlet.io"),
            token_check_url=os.getenv("STAGESAFE_TOKEN_CHECK_URL"),
            http_timeout=float(os.getenv("STAGESAFE_HTTP_TIMEOUT", "30")),
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: SyncConfig) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    errors = []

    if not config.repo_dir.exists():
        errors.append(f"ERROR: Repository directory does not exist: {config.repo_dir}")
    elif not (config.repo_dir / ".git").exists():
        errors.append(f"ERROR: Not a git repository: {config.repo_dir}")

    if config.remote_url and not config.remote_url.startswith(REMOTE_URL_SCHEMES):
        errors.append(f"WARNING: Remote URL may be invalid: {config.remote_url}")

    if config.token is None:
        errors.append("WARNING: No token configured, remote operations will be anonymous")

    if bool(config.author_name) != bool(config.author_email):
        errors.append("WARNING: Author name and email must both be set, falling back to git's identity")

    if errors:
        logging.getLogger('stagesafe.config').debug(f"Configuration check found {len(errors)} issue(s)")
    return errors
