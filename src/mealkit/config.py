"""Configuration management for mealkit using pydantic-settings.

Settings priority (highest to lowest):
1. Explicit constructor arguments / CLI flags
2. Environment variables (MEALKIT_* prefix, ``__`` for nesting)
3. .env file
4. mealkit.yaml project config
5. Default values

Model profiles are the only per-task tunables. They are named and enumerable
so that dev/staging/prod can swap models, budgets and deadlines without code
changes, e.g. ``MEALKIT_PROFILES__QUALITY__MODEL=anthropic/claude-3-5-haiku``.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from mealkit.extract.models import TaskKind

logger = logging.getLogger(__name__)

# Map mealkit.yaml keys to MealkitConfig field names
_YAML_TO_FIELD = {
    "profiles": "profiles",
    "tasks": "task_profiles",
}

# Providers that run locally and need no credential
_KEYLESS_PROVIDERS = ("ollama/", "ollama_chat/")

_PROVIDER_KEYS = {
    "openai/": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic/": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "gemini/": ("gemini_api_key", "GEMINI_API_KEY"),
}


class ModelProfile(BaseModel):
    """Model id plus the budget a single call may spend."""

    model: str
    max_tokens: int = Field(gt=0)
    temperature: float = Field(ge=0.0, le=2.0)
    timeout_ms: int = Field(gt=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


DEFAULT_PROFILES: dict[str, ModelProfile] = {
    # Structured single-object extraction
    "fast": ModelProfile(model="openai/gpt-4o-mini", max_tokens=500, temperature=0.3, timeout_ms=10_000),
    # Suggestion lists
    "balanced": ModelProfile(model="openai/gpt-4o-mini", max_tokens=800, temperature=0.5, timeout_ms=15_000),
    # Multi-item generation
    "quality": ModelProfile(model="openai/gpt-4o", max_tokens=1500, temperature=0.7, timeout_ms=30_000),
}

DEFAULT_TASK_PROFILES: dict[TaskKind, str] = {
    TaskKind.ACTIVITY: "fast",
    TaskKind.RECIPE_ANALYSIS: "fast",
    TaskKind.INVENTORY: "balanced",
    TaskKind.MEAL_SUGGESTIONS: "balanced",
    TaskKind.INGREDIENTS: "quality",
    TaskKind.PANTRY_MEALS: "quality",
}


class _ProjectYamlSource(PydanticBaseSettingsSource):
    """Read project config from mealkit.yaml (lower priority than env vars)."""

    def get_field_value(self, field, field_name):  # type: ignore[override]
        return None, field_name, False

    def __call__(self) -> dict:
        project_file = Path("mealkit.yaml")
        if not project_file.exists():
            return {}

        raw = yaml.safe_load(project_file.read_text()) or {}

        result: dict = {}
        for yaml_key, field_name in _YAML_TO_FIELD.items():
            if yaml_key in raw:
                result[field_name] = raw[yaml_key]
        logger.debug(f"Loaded {sorted(result)} from {project_file}")
        return result


class MealkitConfig(BaseSettings):
    """Configuration settings for mealkit loaded from environment variables.

    All environment variables are prefixed with MEALKIT_ (e.g.
    MEALKIT_OPENAI_API_KEY). Empty string values are treated as unset.

    Example:
        >>> config = MealkitConfig()
        >>> config.profile_for(TaskKind.ACTIVITY).timeout_ms
        10000
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEALKIT_",
        env_nested_delimiter="__",
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _ProjectYamlSource(settings_cls),
            file_secret_settings,
        )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key. Get from: https://platform.openai.com/api-keys",
    )

    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key. Get from: https://console.anthropic.com/settings/keys",
    )

    gemini_api_key: str | None = Field(
        default=None,
        description="Google Gemini API key. Get from: https://aistudio.google.com/apikey",
    )

    profiles: dict[str, ModelProfile] = Field(
        default_factory=lambda: dict(DEFAULT_PROFILES),
        description="Named model profiles (fast, balanced, quality, or any custom name)",
    )

    task_profiles: dict[TaskKind, str] = Field(
        default_factory=lambda: dict(DEFAULT_TASK_PROFILES),
        description="Which profile each extraction task runs under",
    )

    @field_validator("profiles", mode="before")
    @classmethod
    def merge_profile_overrides(cls, v: dict) -> dict:
        """Overlay partial profile overrides on the built-in defaults.

        Lets ``MEALKIT_PROFILES__FAST__TIMEOUT_MS=5000`` change one field
        without restating the whole profile.
        """
        if not isinstance(v, dict):
            return v
        merged: dict = {name: profile.model_dump() for name, profile in DEFAULT_PROFILES.items()}
        for name, override in v.items():
            if isinstance(override, ModelProfile):
                override = override.model_dump()
            if isinstance(override, dict):
                merged[name] = {**merged.get(name, {}), **override}
            else:
                merged[name] = override
        return merged

    @field_validator("task_profiles", mode="before")
    @classmethod
    def merge_task_overrides(cls, v: dict) -> dict:
        if not isinstance(v, dict):
            return v
        merged = {task.value: name for task, name in DEFAULT_TASK_PROFILES.items()}
        for task, name in v.items():
            key = task.value if isinstance(task, TaskKind) else task
            merged[key] = name
        return merged

    @model_validator(mode="after")
    def _check_task_profiles(self) -> "MealkitConfig":
        for task, name in self.task_profiles.items():
            if name not in self.profiles:
                raise ValueError(
                    f"Unknown profile '{name}' for task {task.value}. "
                    f"Available: {', '.join(sorted(self.profiles))}"
                )
        return self

    @model_validator(mode="after")
    def _export_api_keys(self) -> "MealkitConfig":
        """Export API keys to environment so LiteLLM can find them."""
        key_map = {
            "OPENAI_API_KEY": self.openai_api_key,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "GEMINI_API_KEY": self.gemini_api_key,
        }
        for env_var, value in key_map.items():
            if value and env_var not in os.environ:
                os.environ[env_var] = value
        return self

    def profile_for(self, task: TaskKind | str) -> ModelProfile:
        """Resolve the profile a task runs under."""
        task = TaskKind(task)
        return self.profiles[self.task_profiles[task]]

    def api_key_for(self, model: str) -> str | None:
        """Return the credential litellm will use for ``model``, if any.

        Models without a provider prefix are treated as OpenAI models,
        matching LiteLLM's own default.
        """
        if model.startswith(_KEYLESS_PROVIDERS):
            return None
        for prefix, (attr, env_var) in _PROVIDER_KEYS.items():
            if model.startswith(prefix):
                return getattr(self, attr) or os.environ.get(env_var)
        if "/" not in model:
            return self.openai_api_key or os.environ.get("OPENAI_API_KEY")
        return None

    def has_api_key(self, model: str) -> bool:
        """True when ``model`` needs no key or has one configured."""
        if requires_api_key(model):
            return bool(self.api_key_for(model))
        return True

    def validate_api_keys(self, model: str) -> None:
        """Validate that required API key exists for the model provider.

        Raises:
            ValueError: If required API key is missing for the model provider
        """
        if self.has_api_key(model):
            return
        provider = model.split("/", 1)[0] if "/" in model else "openai"
        env_var = f"{provider.upper()}_API_KEY"
        raise ValueError(
            f"{env_var} not found for model {model}. Set it (or MEALKIT_{env_var}) "
            "in the environment or .env file. Requests will use rule-based fallbacks."
        )


def requires_api_key(model: str) -> bool:
    """Whether calls to ``model`` need a credential at all.

    Local providers (Ollama) do not; unknown prefixes are assumed to
    authenticate some other way and are passed through to LiteLLM.
    """
    if model.startswith(_KEYLESS_PROVIDERS):
        return False
    if "/" not in model:
        return True
    return any(model.startswith(prefix) for prefix in _PROVIDER_KEYS)
