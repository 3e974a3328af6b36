"""Single-attempt LLM client using LiteLLM.

Supports OpenAI, Anthropic, Ollama, and any other LiteLLM-compatible
provider. Each call runs under the profile's token budget, temperature and
a hard deadline enforced on our side, because provider-side timeouts are
not reliably honored. There are no retries here: a failed call raises one
of the ModelInvocationError subclasses and the caller decides what to do.
"""

import asyncio
import logging

import litellm

from mealkit.config import MealkitConfig, ModelProfile, requires_api_key
from mealkit.errors import AuthError, ModelTimeout, TransportError, UpstreamError
from mealkit.extract.models import TaskKind

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
litellm.suppress_debug_info = True


class LLMClient:
    """LLM client with a per-call deadline and cost tracking."""

    def __init__(self, profile: ModelProfile, api_key: str | None = None):
        self.profile = profile
        self.api_key = api_key
        self.total_cost_usd = 0.0
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    @classmethod
    def for_task(
        cls,
        config: MealkitConfig,
        task: TaskKind | str,
        profile_name: str | None = None,
    ) -> "LLMClient":
        """Build a client for ``task`` using its configured profile.

        Args:
            profile_name: Use this named profile instead of the task default
        """
        if profile_name is not None:
            if profile_name not in config.profiles:
                raise ValueError(
                    f"Unknown profile '{profile_name}'. Available: {', '.join(sorted(config.profiles))}"
                )
            profile = config.profiles[profile_name]
        else:
            profile = config.profile_for(task)
        return cls(profile, api_key=config.api_key_for(profile.model))

    @property
    def model(self) -> str:
        return self.profile.model

    def _build_messages(self, prompt: str, system_message: str | None) -> list[dict]:
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _track_usage(self, response: object) -> None:
        usage = getattr(response, "usage", None)
        if usage:
            self.total_input_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self.total_output_tokens += getattr(usage, "completion_tokens", 0) or 0
        try:
            cost = litellm.completion_cost(completion_response=response)
        except Exception as e:
            # Unpriced or self-hosted models have no cost entry
            logger.debug(f"No cost data for {self.model}: {e}")
            return
        if cost:
            self.total_cost_usd += cost

    async def acall(self, prompt: str, system_message: str | None = None) -> str:
        """Call the LLM once and return the text response.

        Raises:
            AuthError: No credential configured, or the provider rejected it
            ModelTimeout: The profile's deadline elapsed
            TransportError: Network, DNS or TLS failure, or a reply with no message
            UpstreamError: The provider returned a non-2xx status
        """
        if requires_api_key(self.model) and not self.api_key:
            raise AuthError(f"No API key configured for {self.model}")

        messages = self._build_messages(prompt, system_message)
        deadline = self.profile.timeout_seconds
        logger.debug(f"Calling {self.model} (max_tokens={self.profile.max_tokens}, timeout={deadline:.1f}s)")

        try:
            response = await asyncio.wait_for(
                litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.profile.max_tokens,
                    temperature=self.profile.temperature,
                    timeout=deadline,
                    api_key=self.api_key,
                ),
                timeout=deadline,
            )
        except asyncio.CancelledError:
            raise
        except (asyncio.TimeoutError, litellm.Timeout) as exc:
            raise ModelTimeout(f"{self.model} did not answer within {self.profile.timeout_ms} ms") from exc
        except litellm.AuthenticationError as exc:
            raise AuthError(f"Credential rejected by {self.model}: {exc}") from exc
        except litellm.APIConnectionError as exc:
            raise TransportError(f"Could not reach {self.model}: {exc}") from exc
        except Exception as exc:
            status = getattr(exc, "status_code", None)
            if isinstance(status, int) and not 200 <= status < 300:
                raise UpstreamError(status, f"{self.model} returned HTTP {status}: {exc}") from exc
            raise TransportError(f"LLM call to {self.model} failed: {exc}") from exc

        self._track_usage(response)
        try:
            text = response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError) as exc:
            raise TransportError(f"Malformed reply from {self.model}: no message content") from exc
        if not text.strip():
            logger.warning(f"Empty response from {self.model}")
        logger.debug(f"Raw response from {self.model}: {text[:500]}")
        return text

    def call(self, prompt: str, system_message: str | None = None) -> str:
        """Sync version of acall()."""
        return asyncio.run(self.acall(prompt, system_message=system_message))
