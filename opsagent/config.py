"""Configuration loader for OpsAgent.

Values are read once at startup. Sources, highest priority first:

1. Command line overrides
2. Process environment (OPSAGENT_<KEY>, then the bare <KEY>)
3. The .env file (~/.opsagent/.env unless another path is given)
4. appsettings.json in the working directory
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".opsagent"
ENV_FILE = CONFIG_DIR / ".env"
SETTINGS_FILE = Path("appsettings.json")

ENV_PREFIX = "OPSAGENT_"

SUPPORTED_PROVIDERS = ("openai", "claude")
DEFAULT_PROVIDER = "openai"
DEFAULT_BUILD_LOG_PATH = "Files/build.log"
DEFAULT_MAX_AUTO_INVOKE_ATTEMPTS = 10

# Setting keys, named as in appsettings.json
SETTING_KEYS = (
    "MODEL_ID",
    "PROJECT_KEY",
    "PROJECT_ENDPOINT",
    "SERVICE_ID",
    "PROVIDER",
    "BUILD_LOG_PATH",
    "MAX_AUTO_INVOKE_ATTEMPTS",
    "VERBOSE",
)


@dataclass(frozen=True)
class Config:
    """OpsAgent configuration. Immutable once loaded."""

    model: str
    api_key: str
    provider: str = DEFAULT_PROVIDER
    endpoint: str | None = None
    service_id: str | None = None
    build_log_path: Path = Path(DEFAULT_BUILD_LOG_PATH)
    max_auto_invoke_attempts: int = DEFAULT_MAX_AUTO_INVOKE_ATTEMPTS
    verbose: bool = False


def is_placeholder_value(value):
    """Check if a value is an unfilled template placeholder."""
    if not value:
        return True
    lowered = value.lower().strip()
    return (
        lowered == ""
        or lowered.startswith("paste_your")
        or lowered.startswith("your-")
        or "placeholder" in lowered
    )


def load_env_file(env_file=None):
    """Load settings from a .env file. Missing file means no settings."""
    env_file = Path(env_file) if env_file else ENV_FILE
    if not env_file.exists():
        return {}

    values = {}
    for key, value in dotenv_values(env_file).items():
        if value is None:
            continue
        if key.startswith(ENV_PREFIX):
            key = key[len(ENV_PREFIX):]
        if key in SETTING_KEYS:
            values.setdefault(key, value)
    return values


def load_settings_file(settings_file=None):
    """Load settings from appsettings.json."""
    settings_file = Path(settings_file) if settings_file else SETTINGS_FILE
    if not settings_file.exists():
        return {}

    try:
        data = json.loads(settings_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot read settings file {settings_file}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Settings file {settings_file} must contain a JSON object")
    return {key: str(value) for key, value in data.items() if key in SETTING_KEYS and value is not None}


def _from_environment(key):
    return os.getenv(ENV_PREFIX + key) or os.getenv(key)


def _parse_bool(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def load_config(overrides=None, settings_file=None, env_file=None):
    """Load configuration from all sources.

    Args:
        overrides: Dict of setting keys (e.g. {"MODEL_ID": ...}) from the CLI.
        settings_file: Path to appsettings.json (default: ./appsettings.json)
        env_file: Path to a .env file (default: ~/.opsagent/.env)

    Raises:
        ValueError: If the model id or credential is missing, or a value is invalid.
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, "")}
    env_config = load_env_file(env_file)
    settings_config = load_settings_file(settings_file)

    def get(key, default=None):
        if key in overrides:
            return overrides[key]
        value = _from_environment(key)
        if value:
            return value
        return env_config.get(key) or settings_config.get(key) or default

    model = get("MODEL_ID")
    api_key = get("PROJECT_KEY")

    if is_placeholder_value(model):
        raise ValueError("MODEL_ID is required. Set it in appsettings.json or the environment.")
    if is_placeholder_value(api_key):
        raise ValueError("PROJECT_KEY is required. Set it in appsettings.json or the environment.")

    provider = get("PROVIDER", DEFAULT_PROVIDER).lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown provider: {provider}\nSupported: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    max_attempts_raw = get("MAX_AUTO_INVOKE_ATTEMPTS", DEFAULT_MAX_AUTO_INVOKE_ATTEMPTS)
    try:
        max_attempts = int(max_attempts_raw)
    except (TypeError, ValueError):
        raise ValueError(f"MAX_AUTO_INVOKE_ATTEMPTS must be an integer, got {max_attempts_raw!r}") from None
    if max_attempts < 1:
        raise ValueError("MAX_AUTO_INVOKE_ATTEMPTS must be at least 1")

    endpoint = get("PROJECT_ENDPOINT")

    config = Config(
        model=model,
        api_key=api_key,
        provider=provider,
        endpoint=None if is_placeholder_value(endpoint) else endpoint,
        service_id=get("SERVICE_ID"),
        build_log_path=Path(get("BUILD_LOG_PATH", DEFAULT_BUILD_LOG_PATH)),
        max_auto_invoke_attempts=max_attempts,
        verbose=_parse_bool(get("VERBOSE", False)),
    )
    logger.debug(
        "Loaded config: provider=%s model=%s endpoint=%s service_id=%s",
        config.provider,
        config.model,
        config.endpoint,
        config.service_id,
    )
    return config
