"""Load settings.yaml into typed dataclasses. Reports provider availability at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DEFAULT_LENGTH_MAX_TOKENS = {"short": 256, "medium": 1024, "long": 1536}


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    base_url: str | None = None


@dataclass
class GenerationConfig:
    temperature: float = 0.8
    synthesis_temperature: float = 0.4
    default_max_tokens: int = 1024
    synthesis_max_tokens: int = 2048
    length_max_tokens: dict[str, int] = field(default_factory=lambda: dict(_DEFAULT_LENGTH_MAX_TOKENS))
    inter_call_delay_sec: float = 1.0


@dataclass
class RetryConfig:
    max_attempts: int = 2
    per_template: dict[str, int] = field(default_factory=dict)

    def bound_for(self, template_key: str) -> int:
        return max(1, int(self.per_template.get(template_key, self.max_attempts)))


@dataclass
class LimitsConfig:
    question_min_chars: int = 10
    question_max_chars: int = 500
    agora_min_participants: int = 2
    agora_max_participants: int = 4
    debate_min_participants: int = 2
    daily_thread_limit: int = 10


@dataclass
class StorageConfig:
    db_path: Path = Path("data/philagora.db")


@dataclass
class PersonasConfig:
    dir: Path = Path("personas")


@dataclass
class AppConfig:
    provider: str
    models: dict[str, ModelConfig]
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    personas: PersonasConfig = field(default_factory=PersonasConfig)
    available_providers: set[str] = field(default_factory=set)


def _load_generation(raw: dict) -> GenerationConfig:
    lengths = dict(_DEFAULT_LENGTH_MAX_TOKENS)
    lengths.update({str(k): int(v) for k, v in raw.get("length_max_tokens", {}).items()})
    return GenerationConfig(
        temperature=float(raw.get("temperature", 0.8)),
        synthesis_temperature=float(raw.get("synthesis_temperature", 0.4)),
        default_max_tokens=int(raw.get("default_max_tokens", 1024)),
        synthesis_max_tokens=int(raw.get("synthesis_max_tokens", 2048)),
        length_max_tokens=lengths,
        inter_call_delay_sec=float(raw.get("inter_call_delay_sec", 1.0)),
    )


def _load_limits(raw: dict) -> LimitsConfig:
    defaults = LimitsConfig()
    return LimitsConfig(**{
        name: int(raw.get(name, getattr(defaults, name)))
        for name in defaults.__dataclass_fields__
    })


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; the generation client reports a
    configuration failure when its provider is unavailable.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw.get("models", {}).items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider unavailable (no API key): %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )

    provider = str(raw.get("provider", ""))
    if provider not in models:
        raise ValueError(f"Configured provider '{provider}' has no entry under 'models'")

    retry_raw = raw.get("retry", {})
    retry = RetryConfig(
        max_attempts=int(retry_raw.get("max_attempts", 2)),
        per_template={str(k): int(v) for k, v in retry_raw.get("per_template", {}).items()},
    )

    storage_raw = raw.get("storage", {})
    personas_raw = raw.get("personas", {})

    return AppConfig(
        provider=provider,
        models=models,
        generation=_load_generation(raw.get("generation", {})),
        retry=retry,
        limits=_load_limits(raw.get("limits", {})),
        storage=StorageConfig(db_path=Path(storage_raw.get("db_path", "data/philagora.db"))),
        personas=PersonasConfig(dir=Path(personas_raw.get("dir", "personas"))),
        available_providers=available_providers,
    )
