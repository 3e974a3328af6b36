"""Tests for mealkit.config."""

import os
from unittest.mock import patch

import pytest

from mealkit.config import DEFAULT_PROFILES, MealkitConfig, ModelProfile, _ProjectYamlSource, requires_api_key
from mealkit.extract.models import TaskKind


class TestModelProfiles:
    """Test the named profile defaults and overrides."""

    def test_default_profiles(self, clean_env):
        """The three named profiles carry their documented budgets."""
        config = MealkitConfig(_env_file=None)
        assert set(config.profiles) == {"fast", "balanced", "quality"}
        fast = config.profiles["fast"]
        assert (fast.max_tokens, fast.temperature, fast.timeout_ms) == (500, 0.3, 10_000)
        balanced = config.profiles["balanced"]
        assert (balanced.max_tokens, balanced.temperature, balanced.timeout_ms) == (800, 0.5, 15_000)
        assert config.profiles["quality"].timeout_ms == 30_000

    def test_every_task_has_a_profile(self, clean_env):
        """Each task resolves to a profile out of the box."""
        config = MealkitConfig(_env_file=None)
        for task in TaskKind:
            assert isinstance(config.profile_for(task), ModelProfile)

    def test_task_defaults(self, clean_env):
        """Single-object tasks run fast; multi-item generation runs quality."""
        config = MealkitConfig(_env_file=None)
        assert config.profile_for(TaskKind.ACTIVITY) == DEFAULT_PROFILES["fast"]
        assert config.profile_for("inventory-items-from-text") == DEFAULT_PROFILES["balanced"]
        assert config.profile_for(TaskKind.PANTRY_MEALS) == DEFAULT_PROFILES["quality"]

    def test_timeout_seconds(self):
        profile = ModelProfile(model="openai/gpt-4o-mini", max_tokens=10, temperature=0, timeout_ms=2500)
        assert profile.timeout_seconds == 2.5

    def test_partial_override_from_env(self):
        """One env var changes one field, keeping the rest of the profile."""
        with patch.dict(os.environ, {"MEALKIT_PROFILES__FAST__TIMEOUT_MS": "5000"}, clear=True):
            config = MealkitConfig(_env_file=None)
        assert config.profiles["fast"].timeout_ms == 5000
        assert config.profiles["fast"].max_tokens == 500
        assert config.profiles["quality"].timeout_ms == 30_000

    def test_custom_profile_and_task_mapping(self, clean_env):
        """A new named profile can be assigned to a task."""
        config = MealkitConfig(
            profiles={"local": {"model": "ollama/llama3", "max_tokens": 400, "temperature": 0.2, "timeout_ms": 60_000}},
            task_profiles={TaskKind.ACTIVITY: "local"},
            _env_file=None,
        )
        assert config.profile_for(TaskKind.ACTIVITY).model == "ollama/llama3"
        # Untouched tasks keep their defaults
        assert config.profile_for(TaskKind.INGREDIENTS) == DEFAULT_PROFILES["quality"]
        assert "fast" in config.profiles

    def test_unknown_profile_name_rejected(self, clean_env):
        """A task mapped to a profile that does not exist fails validation."""
        with pytest.raises(ValueError, match="Unknown profile 'turbo'"):
            MealkitConfig(task_profiles={"activity-from-text": "turbo"}, _env_file=None)

    def test_invalid_budget_rejected(self):
        with pytest.raises(ValueError):
            ModelProfile(model="openai/gpt-4o-mini", max_tokens=0, temperature=0.3, timeout_ms=1000)
        with pytest.raises(ValueError):
            ModelProfile(model="openai/gpt-4o-mini", max_tokens=100, temperature=0.3, timeout_ms=0)

    def test_mealkit_yaml(self, clean_env, tmp_path, monkeypatch):
        """mealkit.yaml profiles and task mapping are read."""
        (tmp_path / "mealkit.yaml").write_text(
            "profiles:\n"
            "  quality:\n"
            "    model: anthropic/claude-3-5-haiku\n"
            "tasks:\n"
            "  activity-from-text: balanced\n"
        )
        monkeypatch.chdir(tmp_path)
        data = _ProjectYamlSource(MealkitConfig)()
        assert data["task_profiles"] == {"activity-from-text": "balanced"}

        config = MealkitConfig(_env_file=None)
        assert config.profiles["quality"].model == "anthropic/claude-3-5-haiku"
        assert config.profiles["quality"].max_tokens == 1500
        assert config.profile_for(TaskKind.ACTIVITY).timeout_ms == 15_000

    def test_no_yaml_is_fine(self, clean_env, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert _ProjectYamlSource(MealkitConfig)() == {}


class TestApiKeys:
    """Test credential lookup and validation."""

    def test_validate_openai_key_present(self, clean_env):
        """No error when OpenAI key is set and model is OpenAI."""
        config = MealkitConfig(openai_api_key="sk-test123", _env_file=None)
        config.validate_api_keys("openai/gpt-4o-mini")  # Should not raise

    def test_validate_openai_key_missing(self, clean_env):
        """Error when using OpenAI model without API key."""
        config = MealkitConfig(_env_file=None)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            config.validate_api_keys("openai/gpt-4o-mini")

    def test_validate_anthropic_key_missing(self, clean_env):
        """Error when using Anthropic model without API key."""
        config = MealkitConfig(_env_file=None)
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            config.validate_api_keys("anthropic/claude-3-haiku")

    def test_ollama_needs_no_key(self, clean_env):
        """Ollama models don't require API keys."""
        config = MealkitConfig(_env_file=None)
        config.validate_api_keys("ollama/llama3")  # Should not raise
        assert config.api_key_for("ollama/llama3") is None

    def test_bare_model_name_is_openai(self, clean_env):
        """Models without a provider prefix use the OpenAI key."""
        config = MealkitConfig(openai_api_key="sk-bare", _env_file=None)
        assert config.api_key_for("gpt-4o-mini") == "sk-bare"
        assert requires_api_key("gpt-4o-mini")

    def test_key_from_provider_env_var(self):
        """A plain provider env var is honored without the MEALKIT_ prefix."""
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "sk-ant"}, clear=True):
            config = MealkitConfig(_env_file=None)
            assert config.api_key_for("anthropic/claude-3-haiku") == "sk-ant"
            assert config.has_api_key("anthropic/claude-3-haiku")

    def test_keys_exported_for_litellm(self, clean_env):
        """Configured keys are exported so LiteLLM can find them."""
        MealkitConfig(gemini_api_key="g-key", _env_file=None)
        assert os.environ["GEMINI_API_KEY"] == "g-key"

    def test_empty_env_value_is_unset(self):
        """Empty strings in the environment are ignored."""
        with patch.dict(os.environ, {"MEALKIT_OPENAI_API_KEY": ""}, clear=True):
            config = MealkitConfig(_env_file=None)
        assert config.openai_api_key is None
