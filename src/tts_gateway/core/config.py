"""
Configuration Management for tts-gateway.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (TTS_GATEWAY_API_KEY, TTS_GATEWAY_LOG_LEVEL, ...)
    2. YAML config file (config/settings.yaml, or TTS_GATEWAY_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    backend:
      refresh_margin_s: 300
      output_format: audio-24khz-48kbitrate-mono-mp3

    pipeline:
      default_concurrency: 10
      default_chunk_size: 300

    voices:
      default_voice: zh-CN-XiaoxiaoNeural
      aliases:
        alloy: zh-CN-YunyangNeural

    auth:
      api_key: ""

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


DEFAULT_SETTINGS_PATH = "config/settings.yaml"


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Backend: identity exchange, synthesis endpoint, token refresh
        - Pipeline: batch size and chunk length
        - Voices: default voice and OpenAI alias table
        - Logging: log level and text preview
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Backend (Edge read-aloud via translator identity service)
    # ─────────────────────────────────────────────────────────────────────────
    BACKEND_ENDPOINT_URL = "https://dev.microsofttranslator.com/apps/endpoint?api-version=1.0"
    BACKEND_TTS_URL_TEMPLATE = "https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"
    BACKEND_USER_AGENT = "okhttp/4.5.0"
    BACKEND_CLIENT_VERSION = "4.0.530a 5fe1dc6c"
    BACKEND_USER_ID = "0f04d16a175c411e"
    BACKEND_HOME_REGION = "zh-Hans-CN"
    BACKEND_ACCEPT_LANGUAGE = "zh-Hans"
    BACKEND_SIGNING_KEY = (
        "oik6PdDdMnOXemTbwvMn9de/h9lFnfBaCWbGMMZqqoSaQaqUOqjVGm5NqsmjcBI1x+sS9ugjB55HEJWRiFXYFw=="
    )
    BACKEND_OUTPUT_FORMAT = "audio-24khz-48kbitrate-mono-mp3"
    BACKEND_REFRESH_MARGIN_S = 300      # Refresh token 5 minutes before expiry
    BACKEND_TIMEOUT_S = 60.0            # Transport timeout per call

    # ─────────────────────────────────────────────────────────────────────────
    # Pipeline
    # ─────────────────────────────────────────────────────────────────────────
    PIPELINE_DEFAULT_CONCURRENCY = 10   # Batch size = outbound concurrency ceiling
    PIPELINE_MAX_CONCURRENCY = 50       # Upper bound accepted from requests
    PIPELINE_DEFAULT_CHUNK_SIZE = 300   # Max characters per chunk

    # ─────────────────────────────────────────────────────────────────────────
    # Voices
    # ─────────────────────────────────────────────────────────────────────────
    VOICE_DEFAULT = "zh-CN-XiaoxiaoNeural"
    VOICE_DEFAULT_STYLE = "general"
    VOICE_ALIASES = {
        "shimmer": "zh-CN-XiaoxiaoNeural",
        "alloy": "zh-CN-YunyangNeural",
        "fable": "zh-CN-YunjianNeural",
        "onyx": "zh-CN-XiaoyiNeural",
        "nova": "zh-CN-YunxiNeural",
        "echo": "zh-CN-liaoning-XiaobeiNeural",
    }

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class BackendConfig:
    """
    Speech backend configuration.

    Covers the identity exchange that yields the bearer token and the
    synthesis endpoint that consumes it.
    """
    endpoint_url: str = Defaults.BACKEND_ENDPOINT_URL
    tts_url_template: str = Defaults.BACKEND_TTS_URL_TEMPLATE
    user_agent: str = Defaults.BACKEND_USER_AGENT
    client_version: str = Defaults.BACKEND_CLIENT_VERSION
    user_id: str = Defaults.BACKEND_USER_ID
    home_region: str = Defaults.BACKEND_HOME_REGION
    accept_language: str = Defaults.BACKEND_ACCEPT_LANGUAGE
    signing_key: str = Defaults.BACKEND_SIGNING_KEY
    output_format: str = Defaults.BACKEND_OUTPUT_FORMAT
    refresh_margin_s: int = Defaults.BACKEND_REFRESH_MARGIN_S
    timeout_s: float = Defaults.BACKEND_TIMEOUT_S


@dataclass
class PipelineConfig:
    """
    Batch pipeline configuration.

    ``default_concurrency`` is both the batch size and the hard ceiling on
    simultaneous outbound synthesis calls for one request.
    """
    default_concurrency: int = Defaults.PIPELINE_DEFAULT_CONCURRENCY
    max_concurrency: int = Defaults.PIPELINE_MAX_CONCURRENCY
    default_chunk_size: int = Defaults.PIPELINE_DEFAULT_CHUNK_SIZE


@dataclass
class VoiceConfig:
    """Default voice, default style and the OpenAI voice alias table."""
    default_voice: str = Defaults.VOICE_DEFAULT
    default_style: str = Defaults.VOICE_DEFAULT_STYLE
    aliases: Dict[str, str] = field(default_factory=lambda: dict(Defaults.VOICE_ALIASES))


@dataclass
class AuthConfig:
    """Caller-facing API key. Empty means the gate is disabled."""
    api_key: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, credential refresh (default)
        3 = VERBOSE: Per-batch timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class GatewayConfig:
    """
    Validated configuration for TTSService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = GatewayConfig.from_settings(settings)
        print(config.pipeline.default_concurrency)
    """
    backend: BackendConfig = field(default_factory=BackendConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    voices: VoiceConfig = field(default_factory=VoiceConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GatewayConfig":
        """
        Create GatewayConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated GatewayConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Backend configuration
        # ─────────────────────────────────────────────────────────────────────
        backend_raw = raw.get("backend", {}) or {}
        backend = BackendConfig(
            endpoint_url=str(backend_raw.get("endpoint_url", Defaults.BACKEND_ENDPOINT_URL)),
            tts_url_template=str(backend_raw.get("tts_url_template", Defaults.BACKEND_TTS_URL_TEMPLATE)),
            user_agent=str(backend_raw.get("user_agent", Defaults.BACKEND_USER_AGENT)),
            client_version=str(backend_raw.get("client_version", Defaults.BACKEND_CLIENT_VERSION)),
            user_id=str(backend_raw.get("user_id", Defaults.BACKEND_USER_ID)),
            home_region=str(backend_raw.get("home_region", Defaults.BACKEND_HOME_REGION)),
            accept_language=str(backend_raw.get("accept_language", Defaults.BACKEND_ACCEPT_LANGUAGE)),
            signing_key=str(backend_raw.get("signing_key", Defaults.BACKEND_SIGNING_KEY)),
            output_format=str(backend_raw.get("output_format", Defaults.BACKEND_OUTPUT_FORMAT)),
            refresh_margin_s=int(backend_raw.get("refresh_margin_s", Defaults.BACKEND_REFRESH_MARGIN_S)),
            timeout_s=float(backend_raw.get("timeout_s", Defaults.BACKEND_TIMEOUT_S)),
        )
        cls._validate_non_negative("backend.refresh_margin_s", backend.refresh_margin_s)
        cls._validate_positive("backend.timeout_s", backend.timeout_s)
        if "{region}" not in backend.tts_url_template:
            raise ConfigValidationError("backend.tts_url_template must contain '{region}'")

        # ─────────────────────────────────────────────────────────────────────
        # Pipeline configuration
        # ─────────────────────────────────────────────────────────────────────
        pipeline_raw = raw.get("pipeline", {}) or {}
        pipeline = PipelineConfig(
            default_concurrency=int(pipeline_raw.get("default_concurrency", Defaults.PIPELINE_DEFAULT_CONCURRENCY)),
            max_concurrency=int(pipeline_raw.get("max_concurrency", Defaults.PIPELINE_MAX_CONCURRENCY)),
            default_chunk_size=int(pipeline_raw.get("default_chunk_size", Defaults.PIPELINE_DEFAULT_CHUNK_SIZE)),
        )
        cls._validate_positive("pipeline.default_concurrency", pipeline.default_concurrency)
        cls._validate_positive("pipeline.max_concurrency", pipeline.max_concurrency)
        cls._validate_positive("pipeline.default_chunk_size", pipeline.default_chunk_size)
        cls._validate_range(
            "pipeline.default_concurrency", pipeline.default_concurrency, 1, pipeline.max_concurrency
        )

        # ─────────────────────────────────────────────────────────────────────
        # Voice configuration
        # ─────────────────────────────────────────────────────────────────────
        voices_raw = raw.get("voices", {}) or {}
        aliases = dict(Defaults.VOICE_ALIASES)
        aliases.update({str(k): str(v) for k, v in (voices_raw.get("aliases") or {}).items()})
        voices = VoiceConfig(
            default_voice=str(voices_raw.get("default_voice", Defaults.VOICE_DEFAULT)),
            default_style=str(voices_raw.get("default_style", Defaults.VOICE_DEFAULT_STYLE)),
            aliases=aliases,
        )
        if not voices.default_voice:
            raise ConfigValidationError("voices.default_voice must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Auth configuration (environment wins)
        # ─────────────────────────────────────────────────────────────────────
        auth_raw = raw.get("auth", {}) or {}
        auth = AuthConfig(
            api_key=os.getenv("TTS_GATEWAY_API_KEY") or str(auth_raw.get("api_key") or ""),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            backend=backend,
            pipeline=pipeline,
            voices=voices,
            auth=auth,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_gateway_config() to get a validated GatewayConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    def get_gateway_config(self) -> GatewayConfig:
        """
        Get validated GatewayConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return GatewayConfig.from_settings(self)


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    The path defaults to $TTS_GATEWAY_SETTINGS or config/settings.yaml.
    A missing default file yields empty settings (all defaults); a missing
    file that was named explicitly is an error.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist.
    """
    explicit = path is not None or bool(os.getenv("TTS_GATEWAY_SETTINGS"))
    p = Path(path or os.getenv("TTS_GATEWAY_SETTINGS") or DEFAULT_SETTINGS_PATH)
    if not p.exists():
        if explicit:
            raise FileNotFoundError(f"settings file not found: {p.resolve()}")
        return Settings(raw={})

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
