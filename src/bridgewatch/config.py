"""
Bridgewatch Configuration
=========================

This module handles configuration loading for the border traffic agent.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    BRIDGEWATCH_STREAM_URL         -> camera.stream_url
    BRIDGEWATCH_CAPTURE_INTERVAL   -> camera.capture_interval_seconds
    BRIDGEWATCH_BUFFER_SIZE        -> frames.buffer_size
    BRIDGEWATCH_FRESHNESS_SECONDS  -> frames.freshness_seconds
    BRIDGEWATCH_DETECTOR_URL       -> detector.url
    BRIDGEWATCH_LLM_MODEL          -> llm.model and classifier.model
    ANTHROPIC_API_KEY              -> llm.api_key
    BRIDGEWATCH_DATABASE_URL       -> persistence.database_url
    BRIDGEWATCH_PORT               -> server.port
    BRIDGEWATCH_LOG_LEVEL          -> logging.level
    PORT                           -> server.port (wins over BRIDGEWATCH_PORT)

Example:
    from bridgewatch.config import settings

    print(settings.camera.stream_url)
    print(settings.frames.buffer_size)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


DEFAULT_MODEL = "claude-sonnet-4-20250514"


# =============================================================================
# Configuration Models
# =============================================================================

class CameraConfig(BaseModel):
    """Public camera feed and frame acquisition."""

    stream_url: str = Field(
        default="https://webcast.etl.co.ls/m/SEHq7e82/maseru-bridge?list=NOdbTdaJ",
        description="Public webcast locator for the border camera",
    )
    ffmpeg_bin: str = Field(default="ffmpeg", description="ffmpeg executable")
    capture_interval_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Seconds between scheduled captures",
    )
    capture_timeout_seconds: float = Field(
        default=25.0,
        gt=0,
        description="Hard timeout for a single frame grab",
    )
    max_image_width: int = Field(
        default=1280,
        ge=64,
        description="Wider frames are downscaled before storage",
    )
    jpeg_quality: int = Field(default=85, ge=1, le=100, description="Re-encode quality")
    foreground_refresh_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Requests reuse the newest frame if it is younger than this",
    )


class FramesConfig(BaseModel):
    """Frame retention and selection."""

    buffer_size: int = Field(default=12, ge=1, description="Rolling buffer capacity")
    freshness_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Max age for a preserved frame to be selectable",
    )
    max_selected: int = Field(default=3, ge=1, description="Frames sent per analysis")


class ClassifierConfig(BaseModel):
    """Camera angle classifier."""

    model: str = Field(default=DEFAULT_MODEL, description="Vision model for classification")
    max_tokens: int = Field(default=10, ge=1, description="Reply token cap")


class DetectorConfig(BaseModel):
    """External vehicle detector service."""

    url: Optional[str] = Field(
        default=None,
        description="Detector endpoint; unset disables automated counts",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout")
    camera_view: str = Field(default="bridge", description="View tag sent to the detector")


class LLMConfig(BaseModel):
    """Generative answer model."""

    model: str = Field(default=DEFAULT_MODEL, description="Vision language model")
    max_tokens: int = Field(default=1024, ge=1, description="Answer token cap")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Per-call timeout")
    api_key: Optional[str] = Field(default=None, description="Provider API key")


class CacheConfig(BaseModel):
    """Answer caching."""

    response_ttl_seconds: float = Field(
        default=120.0,
        gt=0,
        description="TTL of category-keyed answers",
    )
    latest_ttl_seconds: float = Field(
        default=180.0,
        gt=0,
        description="TTL of the latest unprompted analysis",
    )


class PersistenceConfig(BaseModel):
    """Optional durable sink."""

    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL; unset selects the null sink",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for Bridgewatch.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    camera: CameraConfig = Field(default_factory=CameraConfig)
    frames: FramesConfig = Field(default_factory=FramesConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration

    Raises:
        pydantic.ValidationError: If any value is out of range
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Camera settings
    if env_url := os.environ.get("BRIDGEWATCH_STREAM_URL"):
        config_data.setdefault("camera", {})["stream_url"] = env_url
    if env_interval := os.environ.get("BRIDGEWATCH_CAPTURE_INTERVAL"):
        config_data.setdefault("camera", {})["capture_interval_seconds"] = float(env_interval)

    # Frame retention
    if env_size := os.environ.get("BRIDGEWATCH_BUFFER_SIZE"):
        config_data.setdefault("frames", {})["buffer_size"] = int(env_size)
    if env_fresh := os.environ.get("BRIDGEWATCH_FRESHNESS_SECONDS"):
        config_data.setdefault("frames", {})["freshness_seconds"] = float(env_fresh)

    # Detector
    if env_detector := os.environ.get("BRIDGEWATCH_DETECTOR_URL"):
        config_data.setdefault("detector", {})["url"] = env_detector

    # Models
    if env_model := os.environ.get("BRIDGEWATCH_LLM_MODEL"):
        config_data.setdefault("llm", {})["model"] = env_model
        config_data.setdefault("classifier", {})["model"] = env_model
    if env_key := os.environ.get("ANTHROPIC_API_KEY"):
        config_data.setdefault("llm", {})["api_key"] = env_key

    # Persistence
    if env_db := os.environ.get("BRIDGEWATCH_DATABASE_URL"):
        config_data.setdefault("persistence", {})["database_url"] = env_db

    # Server settings (hosting platforms set PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("BRIDGEWATCH_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("BRIDGEWATCH_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


# =============================================================================
# Global Settings Instance
# =============================================================================

settings = load_config()
setup_logging(settings)
