import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

DEFAULT_BASE_URL = "https://integrate.api.nvidia.com/v1"

DEFAULT_MODEL_MAP: Dict[str, str] = {
    "gpt-3.5-turbo": "meta/llama-3.1-8b-instruct",
    "gpt-4": "z-ai/glm4.7",
    "gpt-4-turbo": "z-ai/glm4.7",
    "gpt-4o": "deepseek-ai/deepseek-v3.2",
    "claude-3-opus": "deepseek-ai/deepseek-v3.1",
    "claude-3-sonnet": "z-ai/glm4.7",
    "gemini-pro": "meta/llama-3.1-8b-instruct",
}

# Mapping format example (env NIM_MODEL_MAP):
# "gpt-4=z-ai/glm4.7,my-alias=meta/llama-3.1-8b-instruct"


def parse_model_map(raw: str | None) -> Dict[str, str]:
    if not raw:
        return {}
    mapping: Dict[str, str] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            continue
        alias, upstream_id = part.split("=", 1)
        alias, upstream_id = alias.strip(), upstream_id.strip()
        if alias and upstream_id:
            mapping[alias] = upstream_id
    return mapping


@dataclass(frozen=True)
class ModelProfile:
    upstream_model_id: str
    is_slow_tier: bool


@dataclass(frozen=True)
class TranslatorConfig:
    """Process-wide settings for the translator, built once at startup.

    Slow tiers (upstream ids containing one of `slow_tier_markers`) get a
    smaller message window and a lower `max_tokens` ceiling than fast tiers.
    """

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 180.0
    model_map: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_MODEL_MAP))
    )
    default_model: str = "gpt-4o"
    fallback_upstream_model: str = "deepseek-ai/deepseek-v3.1"
    slow_tier_markers: Tuple[str, ...] = ("z-ai", "deepseek")
    slow_message_window: int = 4
    fast_message_window: int = 10
    slow_default_max_tokens: int = 512
    slow_max_tokens_ceiling: int = 1024
    fast_default_max_tokens: int = 1024
    fast_max_tokens_ceiling: int = 2048
    default_temperature: float = 0.7
    top_p: float = 0.9

    def __post_init__(self) -> None:
        # Freeze whatever mapping the caller passed in
        if not isinstance(self.model_map, MappingProxyType):
            object.__setattr__(
                self, "model_map", MappingProxyType(dict(self.model_map))
            )
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def is_slow_tier(self, upstream_model_id: str) -> bool:
        return any(marker in upstream_model_id for marker in self.slow_tier_markers)

    def message_window(self, profile: ModelProfile) -> int:
        return self.slow_message_window if profile.is_slow_tier else self.fast_message_window

    def max_tokens_limits(self, profile: ModelProfile) -> Tuple[int, int]:
        """Return `(default, ceiling)` for the profile's tier."""
        if profile.is_slow_tier:
            return self.slow_default_max_tokens, self.slow_max_tokens_ceiling
        return self.fast_default_max_tokens, self.fast_max_tokens_ceiling


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(environ.get(name, default) or default)
    except ValueError:
        return default


def load_config(environ: Mapping[str, str] | None = None) -> TranslatorConfig:
    """Build the translator config from environment variables."""
    env = os.environ if environ is None else environ
    model_map = dict(DEFAULT_MODEL_MAP)
    model_map.update(parse_model_map(env.get("NIM_MODEL_MAP")))
    api_key = (env.get("NIM_API_KEY") or "").strip() or None
    return TranslatorConfig(
        api_key=api_key,
        base_url=env.get("NIM_API_BASE") or DEFAULT_BASE_URL,
        timeout_seconds=_float_env(env, "NIM_TIMEOUT_SECONDS", 180.0),
        model_map=model_map,
        default_model=env.get("NIM_DEFAULT_MODEL") or "gpt-4o",
        fallback_upstream_model=env.get("NIM_FALLBACK_MODEL")
        or "deepseek-ai/deepseek-v3.1",
    )
