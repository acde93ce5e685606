"""
Runtime configuration.

Process settings come from environment variables (and CLI overrides); email
delivery settings live in ``email_config.toml`` next to tasks.md.

Environment:
    YARMTL_DIR          directory holding tasks.md (default: current directory)
    YARMTL_GIT          commit every change to git (default: true)
    YARMTL_PUSH         push after committing when a remote exists (default: true)
    YARMTL_DAEMON_TIME  daily reminder time, HH:MM local (default: 05:00)
    YARMTL_LOG_LEVEL    logging level (default: INFO)
    YARMTL_API_PORT     REST API port for ``yarmtl serve`` (default: 9400)
"""

import os
from dataclasses import asdict, dataclass
from datetime import datetime, time
from pathlib import Path
from typing import Mapping, Optional

import toml

from yarmtl.parsers.task_parser import TASKS_FILE_NAME

EMAIL_CONFIG_FILE_NAME = "email_config.toml"

_TRUE_VALUES = ("true", "1", "yes", "on")


class ConfigError(Exception):
    """A configuration value or file is missing or invalid."""


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


def parse_daemon_time(raw: str) -> time:
    try:
        return datetime.strptime(raw.strip(), "%H:%M").time()
    except ValueError as e:
        raise ConfigError(f"Invalid daemon time '{raw}', expected HH:MM") from e


@dataclass
class Settings:
    working_dir: Path
    git_enabled: bool = True
    push_enabled: bool = True
    daemon_time: time = time(5, 0)
    log_level: str = "INFO"
    api_port: int = 9400

    @property
    def tasks_file(self) -> Path:
        return self.working_dir / TASKS_FILE_NAME

    @property
    def email_config_file(self) -> Path:
        return self.working_dir / EMAIL_CONFIG_FILE_NAME


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    working_dir: Optional[str] = None,
) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env: Environment mapping (default: os.environ)
        working_dir: Explicit directory (``--path``); created if missing
    """
    env = os.environ if env is None else env

    raw_dir = working_dir or env.get("YARMTL_DIR", "")
    if raw_dir:
        path = Path(raw_dir).expanduser()
        if path.exists() and not path.is_dir():
            raise ConfigError(f"Path {path} is not a directory")
        path.mkdir(parents=True, exist_ok=True)
        path = path.resolve()
    else:
        path = Path.cwd()

    try:
        api_port = int(env.get("YARMTL_API_PORT", "9400"))
    except ValueError as e:
        raise ConfigError(f"Invalid YARMTL_API_PORT: {env.get('YARMTL_API_PORT')}") from e

    return Settings(
        working_dir=path,
        git_enabled=_parse_bool(env.get("YARMTL_GIT", "true")),
        push_enabled=_parse_bool(env.get("YARMTL_PUSH", "true")),
        daemon_time=parse_daemon_time(env.get("YARMTL_DAEMON_TIME", "05:00")),
        log_level=env.get("YARMTL_LOG_LEVEL", "INFO").upper(),
        api_port=api_port,
    )


# ---------------------------------------------------------------------------
# Email configuration
# ---------------------------------------------------------------------------

@dataclass
class EmailConfig:
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    username: str = "your_email@gmail.com"
    password: str = "your_app_password"
    from_email: str = "your_email@gmail.com"
    to_email: str = "your_email@gmail.com"


def load_email_config(path: Path) -> EmailConfig:
    """
    Read email settings from a TOML file.

    Raises:
        ConfigError: if the file is missing, malformed or lacks a field
    """
    if not path.exists():
        raise ConfigError(f"Email config file not found: {path}. Run 'yarmtl setup-email' first.")

    try:
        data = toml.load(str(path))
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    missing = [name for name in EmailConfig.__dataclass_fields__ if name not in data]
    if missing:
        raise ConfigError(f"{path} is missing: {', '.join(missing)}")

    try:
        return EmailConfig(
            smtp_server=str(data["smtp_server"]),
            smtp_port=int(data["smtp_port"]),
            username=str(data["username"]),
            password=str(data["password"]),
            from_email=str(data["from_email"]),
            to_email=str(data["to_email"]),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {path}: {e}") from e


def write_email_config_template(path: Path) -> None:
    """Write an EmailConfig with placeholder values for the user to edit."""
    path.write_text(toml.dumps(asdict(EmailConfig())), encoding="utf-8")
