# Configuration loader with environment variable support
# YAML file (config/<ENV>.yaml) for defaults, environment for deployment overrides

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

VALID_MODES = {"stdio", "http"}


class AppConfig(BaseModel):
    name: str = "vfb3-mcp-server"
    version: str = "1.2.1"
    log_level: str = "INFO"
    environment: str = "development"


class BackendsConfig(BaseModel):
    """Remote data services consulted by the tools."""

    term_info_url: str = Field(
        default="https://v3-cached.virtualflybrain.org",
        description="Base URL of the term info / query service",
    )
    solr_url: str = Field(
        default="https://solr.virtualflybrain.org/solr/ontology/select",
        description="Solr select handler for the ontology index",
    )
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("term_info_url", "solr_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"backend URL must be http(s), got {v!r}")
        return v.rstrip("/")


class GatewayConfig(BaseModel):
    json_response: bool = Field(
        default=False,
        description="Answer request/response calls with JSON bodies instead of SSE",
    )
    allowed_hosts: List[str] = Field(default_factory=list)
    allowed_origins: List[str] = Field(default_factory=list)


class FacetsConfig(BaseModel):
    discovery_enabled: bool = Field(
        default=True, description="Ask Solr for the facet vocabulary at startup"
    )


class TelemetryConfig(BaseModel):
    enabled: bool = False
    url: Optional[str] = None
    timeout_seconds: float = Field(default=5.0, gt=0)


class Config(BaseModel):
    """Main configuration model"""

    app: AppConfig = Field(default_factory=AppConfig)
    backends: BackendsConfig = Field(default_factory=BackendsConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    facets: FacetsConfig = Field(default_factory=FacetsConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


class Settings(BaseSettings):
    """Environment-based settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="development", alias="ENV")
    config_path: Optional[str] = Field(default=None, alias="CONFIG_PATH")

    # Process
    port: int = Field(default=3000, alias="PORT")
    host: str = Field(default="0.0.0.0", alias="HOST")
    mcp_mode: str = Field(default="stdio", alias="MCP_MODE")
    allowed_hosts: Optional[str] = Field(default=None, alias="ALLOWED_HOSTS")

    # Backends
    term_info_url: Optional[str] = Field(default=None, alias="TERM_INFO_URL")
    solr_url: Optional[str] = Field(default=None, alias="SOLR_URL")
    backend_timeout_seconds: Optional[float] = Field(
        default=None, alias="BACKEND_TIMEOUT_SECONDS"
    )

    # Usage telemetry
    telemetry_url: Optional[str] = Field(default=None, alias="TELEMETRY_URL")

    # OpenTelemetry
    otel_exporter_otlp_endpoint: Optional[str] = Field(
        default=None, alias="OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    otel_service_name: str = Field(default="vfb3-mcp-server", alias="OTEL_SERVICE_NAME")

    # Logging
    log_level: Optional[str] = Field(default=None, alias="LOG_LEVEL")

    @field_validator("mcp_mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        mode = (v or "stdio").strip().lower()
        if mode not in VALID_MODES:
            logger.warning(f"Unknown MCP_MODE {v!r}; falling back to stdio")
            return "stdio"
        return mode

    def allowed_host_list(self) -> List[str]:
        if not self.allowed_hosts:
            return []
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]


def _resolve_config_path(settings: Settings) -> Path:
    if settings.config_path:
        return Path(settings.config_path).expanduser()
    return Path(__file__).parent.parent.parent / "config" / f"{settings.env}.yaml"


def apply_env_overrides(config: Config, settings: Settings) -> Config:
    """Environment values win over the YAML file when they are set."""
    backends = config.backends.model_copy()
    if settings.term_info_url:
        backends.term_info_url = settings.term_info_url.rstrip("/")
    if settings.solr_url:
        backends.solr_url = settings.solr_url.rstrip("/")
    if settings.backend_timeout_seconds:
        backends.timeout_seconds = settings.backend_timeout_seconds

    gateway = config.gateway.model_copy()
    hosts = settings.allowed_host_list()
    if hosts:
        gateway.allowed_hosts = hosts

    telemetry = config.telemetry.model_copy()
    if settings.telemetry_url:
        telemetry.url = settings.telemetry_url
        telemetry.enabled = True

    app = config.app.model_copy()
    if settings.log_level:
        app.log_level = settings.log_level.upper()
    app.environment = settings.env

    return config.model_copy(
        update={
            "app": app,
            "backends": backends,
            "gateway": gateway,
            "telemetry": telemetry,
        }
    )


def load_config() -> tuple[Config, Settings]:
    """
    Load configuration from YAML file and environment variables.

    Returns:
        tuple: (Config, Settings) - YAML config and environment settings

    Raises:
        FileNotFoundError: If CONFIG_PATH points at a missing file
        ValueError: If configuration validation fails
    """
    settings = Settings()
    config_path = _resolve_config_path(settings)

    if config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}
    elif settings.config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    else:
        logger.warning(f"No configuration file at {config_path}; using defaults")
        config_dict = {}

    try:
        config = Config(**config_dict)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    return apply_env_overrides(config, settings), settings


# Global config instances (loaded once at startup)
_config: Optional[Config] = None
_settings: Optional[Settings] = None


def get_config() -> Config:
    """Get the global Config instance"""
    global _config, _settings
    if _config is None:
        _config, _settings = load_config()
    return _config


def get_settings() -> Settings:
    """Get the global Settings instance"""
    global _config, _settings
    if _settings is None:
        _config, _settings = load_config()
    return _settings


def init_config() -> tuple[Config, Settings]:
    """Initialize and cache global config instances"""
    global _config, _settings
    _config, _settings = load_config()
    return _config, _settings


def reload_config() -> tuple[Config, Settings]:
    """Force reload of config/settings from disk and environment."""
    global _config, _settings
    _config, _settings = load_config()
    return _config, _settings
