import os
import shutil
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import toml
from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """The backends aicmd can talk to."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of one provider: where its settings live and its defaults."""

    kind: ProviderKind
    display_name: str
    credential_env: Optional[str]
    endpoint_env: str
    model_env: str
    default_model: str
    default_endpoint: Optional[str] = None


# Auto-selection tries the rows in this order.
PROVIDERS: Tuple[ProviderSpec, ...] = (
    ProviderSpec(
        kind=ProviderKind.ANTHROPIC,
        display_name="Anthropic",
        credential_env="ANTHROPIC_API_KEY",
        endpoint_env="ANTHROPIC_API_BASE",
        model_env="ANTHROPIC_MODEL",
        default_model="claude-3-5-sonnet-latest",
        default_endpoint="https://api.anthropic.com",
    ),
    ProviderSpec(
        kind=ProviderKind.OPENAI,
        display_name="OpenAI",
        credential_env="OPENAI_API_KEY",
        endpoint_env="OPENAI_API_BASE",
        model_env="OPENAI_MODEL",
        default_model="gpt-4",
        default_endpoint="https://api.openai.com/v1",
    ),
    ProviderSpec(
        kind=ProviderKind.OLLAMA,
        display_name="Ollama",
        credential_env=None,
        endpoint_env="OLLAMA_API_BASE",
        model_env="OLLAMA_MODEL",
        default_model="llama2",
    ),
)


@dataclass(frozen=True)
class ProviderConfig:
    """The provider selected for this run."""

    kind: ProviderKind
    display_name: str
    model: str
    endpoint: str
    api_key: Optional[str] = field(default=None, repr=False)


def _first_non_empty(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _missing_settings(spec: ProviderSpec, env: Mapping[str, str]) -> list:
    """Names of the variables that still have to be set for `spec` to be usable."""
    missing = []
    if spec.credential_env and not env.get(spec.credential_env):
        missing.append(spec.credential_env)
    if not spec.default_endpoint and not env.get(spec.endpoint_env):
        missing.append(spec.endpoint_env)
    return missing


def _build(spec: ProviderSpec, model: Optional[str], env: Mapping[str, str]) -> ProviderConfig:
    return ProviderConfig(
        kind=spec.kind,
        display_name=spec.display_name,
        model=_first_non_empty(model, env.get(spec.model_env), spec.default_model),
        endpoint=_first_non_empty(env.get(spec.endpoint_env), spec.default_endpoint),
        api_key=env.get(spec.credential_env) if spec.credential_env else None,
    )


def resolve_provider(
    provider: Optional[str],
    model: Optional[str],
    env: Mapping[str, str],
    table: Tuple[ProviderSpec, ...] = PROVIDERS,
) -> ProviderConfig:
    """
    Pick the provider to use for this run.

    An explicit `provider` name restricts the search to that row of `table`.
    Otherwise the first configured row wins, in table order.

    Raises:
        ConfigError: If the named provider is unknown or not configured, or
            if no provider at all is configured.
    """
    if provider:
        name = provider.strip().lower()
        for spec in table:
            if spec.kind.value == name:
                missing = _missing_settings(spec, env)
                if missing:
                    raise ConfigError(
                        f"{spec.display_name} is not configured: set {' and '.join(missing)}"
                    )
                return _build(spec, model, env)
        known = ", ".join(spec.kind.value for spec in table)
        raise ConfigError(f"Unknown provider '{provider}'. Choose one of: {known}")

    for spec in table:
        if not _missing_settings(spec, env):
            logger.info(f"Auto-selected provider: {spec.kind.value}")
            return _build(spec, model, env)

    candidates = [spec.credential_env or spec.endpoint_env for spec in table]
    raise ConfigError(
        f"No valid AI provider configuration found. Set {', '.join(candidates[:-1])}, or {candidates[-1]}"
    )


def provider_env_keys(table: Tuple[ProviderSpec, ...] = PROVIDERS) -> list:
    """Every environment variable the provider table reads."""
    keys = []
    for spec in table:
        keys.extend(key for key in (spec.credential_env, spec.endpoint_env, spec.model_env) if key)
    return keys


def _default_shell() -> str:
    return shutil.which("bash") or "/bin/sh"


@dataclass
class Config:
    """Configuration handler for aicmd."""

    config_dir: str = field(default_factory=lambda: os.path.expanduser("~/.config/aicmd"))
    config_file: Optional[str] = None
    _file_config: dict = field(init=False, repr=False)

    # Application configuration
    log_dir: str = field(init=False)
    verbose: bool = field(init=False)
    shell: str = field(init=False)
    max_fix_attempts: int = field(init=False)
    max_tokens: int = field(init=False)

    def __post_init__(self):
        """Post-initialization to set up dependent fields."""
        if self.config_file is None:
            self.config_file = os.environ.get(
                "AICMD_CONFIG_FILE", os.path.join(self.config_dir, "config.toml")
            )
        self._file_config = self._load_config_from_file()
        self.log_dir = self._get_config("AICMD_LOG_DIR", os.path.join(self.config_dir, "logs"))
        self.verbose = self._get_bool("AICMD_VERBOSE", False)
        self.shell = self._get_config("AICMD_SHELL", None) or _default_shell()
        self.max_fix_attempts = int(self._get_config("AICMD_MAX_FIX_ATTEMPTS", 0))
        self.max_tokens = int(self._get_config("AICMD_MAX_TOKENS", 1024))

    def _load_config_from_file(self) -> dict:
        """Loads configuration from the TOML file, if there is one."""
        if not os.path.exists(self.config_file):
            return {}
        try:
            with open(self.config_file, "r") as f:
                return toml.load(f)
        except (toml.TomlDecodeError, IOError) as e:
            logger.warning(f"Could not read config file at {self.config_file}: {e}")
            return {}

    def _get_config(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Get a configuration value, prioritizing environment variables,
        then the config file, and finally a default value.
        """
        value = os.environ.get(key)
        if value is not None:
            return value

        for section in self._file_config.values():
            if isinstance(section, dict) and key in section:
                return section[key]

        return default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self._get_config(key, default)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def provider_env(self) -> Dict[str, str]:
        """Provider settings from the config file, overridden by the real environment."""
        env = {}
        for key in provider_env_keys():
            value = self._get_config(key)
            if value:
                env[key] = str(value)
        return env

    def write_default(self) -> str:
        """Writes a default configuration file and returns its path."""
        os.makedirs(os.path.dirname(self.config_file) or ".", exist_ok=True)
        default_config = {
            "application": {
                "AICMD_LOG_DIR": self.log_dir,
                "AICMD_SHELL": self.shell,
                "AICMD_MAX_FIX_ATTEMPTS": self.max_fix_attempts,
                "AICMD_MAX_TOKENS": self.max_tokens,
            },
            "behavior": {
                "AICMD_VERBOSE": self.verbose,
            },
        }
        with open(self.config_file, "w") as f:
            f.write("[providers]\n")
            f.write("# Uncomment and fill in the provider you want to use.\n")
            for key in provider_env_keys():
                f.write(f"# {key} = \"\"\n")
            f.write("\n")
            toml.dump(default_config, f)
        logger.info(f"Wrote default config file to {self.config_file}")
        return self.config_file


# Singleton instance holder
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Returns the singleton Config instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance
