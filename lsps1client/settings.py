import os
import re
from enum import Enum
from pathlib import Path
from pydantic import (
    Field,
    FilePath,
    field_validator,
    field_serializer,
    HttpUrl,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.providers.dotenv import DotEnvSettingsSource
from typing import Optional

VERSION = '0.1.0'
PUBKEY_RE = re.compile(r"^[0-9A-Fa-f]{66}$")


class Environment(str, Enum):
    PROD = 'production'
    DEV = 'development'


class Interface(str, Enum):
    CLI = "cli"
    API = "api"


class LnImplementation(str, Enum):
    LND = 'lnd'
    CLN = 'cln'  # not yet supported

    @classmethod
    def supported(cls) -> list["LnImplementation"]:
        return [cls.LND]


class LogLevel(str, Enum):
    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARNING = 'WARNING'
    ERROR = 'ERROR'
    CRITICAL = 'CRITICAL'


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )
    log_level: LogLevel = LogLevel.INFO
    interface: Interface = Interface.CLI

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings
    ):
        # 1) peek at the base .env for the ENVIRONMENT key
        base_path = Path(".env")
        if base_path.is_file():
            base_vars = DotEnvSettingsSource._static_read_env_file(
                base_path,
                encoding="utf-8",
                case_sensitive=False,
                ignore_empty=False,
                parse_none_str=None,
            )
        else:
            base_vars = {}

        # 2) choose .env.dev or .env
        env = base_vars.get("environment", Environment.PROD.value)
        chosen = ".env.dev" if env.upper() == Environment.DEV.name else ".env"

        custom_dotenv = DotEnvSettingsSource(
            settings_cls=cls,
            env_file=chosen,
            env_file_encoding="utf-8",
        )

        def filtered_dotenv() -> dict[str, object]:
            data = custom_dotenv()
            # an empty value in the file means "use the default"
            return {k: v for k, v in data.items() if v != ""}

        return (
            init_settings,
            filtered_dotenv,
            env_settings,
            file_secret_settings,
        )


class EnvironmentSettings(ClientSettings):
    environment: Environment = Environment.PROD

    @field_validator('environment', mode='before')
    def validate_env(cls, value):
        if isinstance(value, Environment):
            return value

        # accept "development", "dev", "PROD", ...
        if isinstance(value, str):
            for env in Environment:
                if value.lower() in (env.value, env.name.lower()):
                    return env
            raise ValueError(f"Invalid env: {value}")

        raise ValueError(f"Environment must be a str or Environment enum, got {value!r}")


class ProviderSettings(ClientSettings):
    lsp_provider: str = Field(default='megalith-lsp')
    custom_lsp_url: Optional[HttpUrl] = Field(default=None)
    custom_lsp_name: str = Field(default='Custom LSP')
    custom_lsp_adapter: str = Field(default='lsps1-v1')

    @field_serializer("custom_lsp_url", mode="plain")
    def _ser_custom_lsp_url(self, v: Optional[HttpUrl], info) -> Optional[str]:
        return None if v is None else v.unicode_string()


class CapabilitySettings(ClientSettings):
    hard_floor_sats: int = Field(default=100000)
    default_min_channel_sats: int = Field(default=100000)
    default_max_channel_sats: int = Field(default=16000000)
    default_fee_rate_percent: float = Field(default=0.1)
    default_channel_sats: int = Field(default=1000000)

    @field_validator(
        'hard_floor_sats',
        'default_min_channel_sats',
        'default_max_channel_sats',
        'default_channel_sats')
    def validate_sats_positive(cls, v: int) -> int:
        if v > 0:
            return v
        raise ValueError(f'{v} must be greater than 0')

    @field_validator('default_fee_rate_percent')
    def validate_fee_rate(cls, v: float) -> float:
        if v >= 0:
            return v
        raise ValueError(f'{v} must be greater than or equal to 0')


class OrderSettings(ClientSettings):
    node_pubkey: Optional[str] = Field(default=None)
    channel_size_sat: int = Field(default=1000000)
    required_channel_confirmations: int = Field(default=1)
    funding_confirms_within_blocks: int = Field(default=6)
    channel_expiry_blocks: int = Field(default=13140)
    token: str = Field(default='lsps1client')
    announce_channel: bool = Field(default=True)

    @field_validator('channel_size_sat', 'channel_expiry_blocks')
    def validate_greater_than_zero(cls, v: int) -> int:
        if v > 0:
            return v
        raise ValueError(f'{v} must be greater than 0')

    @field_validator(
        'required_channel_confirmations',
        'funding_confirms_within_blocks')
    def validate_greater_equal_to_zero(cls, v: int) -> int:
        if v >= 0:
            return v
        raise ValueError(f'{v} must be greater than or equal to 0')

    @field_validator('node_pubkey', mode='before')
    def validate_node_pubkey(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip()
        if not PUBKEY_RE.fullmatch(v):
            raise ValueError("node pubkey must be exactly 66 hex characters")
        return v


class PollingSettings(ClientSettings):
    order_poll_interval_seconds: float = Field(default=5.0)
    channel_poll_interval_seconds: float = Field(default=5.0)

    @field_validator('order_poll_interval_seconds', 'channel_poll_interval_seconds')
    def validate_interval_positive(cls, v: float) -> float:
        if v > 0:
            return v
        raise ValueError(f'{v} must be greater than 0')


class HttpSettings(ClientSettings):
    request_timeout_seconds: float = Field(default=30.0)


class CacheSettings(ClientSettings):
    cache_path: Optional[str] = Field(default='output/lsp-cache.json')


class LnBackendSettings(ClientSettings):
    node: Optional[LnImplementation] = Field(default=None)
    rest_host: Optional[HttpUrl] = Field(default=None)
    permissions_file_path: Optional[FilePath] = Field(default=None)
    cert_file_path: Optional[FilePath] = Field(default=None)

    @field_validator("node", mode="after")
    def validate_supported_impl(cls, v: Optional[LnImplementation]) -> Optional[LnImplementation]:
        if not v:
            return v
        if v not in LnImplementation.supported():
            raise ValueError(f'{v.name} not yet supported')
        return v

    @field_validator("permissions_file_path", "cert_file_path", mode="before")
    def _expand_user_path(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            return os.path.expanduser(v)
        return v

    @field_serializer("rest_host", mode="plain")
    def _ser_rest_host(self, v: Optional[HttpUrl], info) -> Optional[str]:
        return None if v is None else v.unicode_string()

    @field_serializer("permissions_file_path", 'cert_file_path', mode="plain")
    def _ser_path(self, v: Optional[Path], info) -> Optional[str]:
        return None if v is None else v.as_posix()

    @property
    def configured(self) -> bool:
        return bool(self.node and self.rest_host and self.permissions_file_path)


class ApiSettings(ClientSettings):
    max_listen_minutes: int = 60
    max_idle_minutes: int = 30
    interval_minutes: int = 5
    heartbeat_seconds: float = 10.0


class Settings(
        EnvironmentSettings,
        ProviderSettings,
        CapabilitySettings,
        OrderSettings,
        PollingSettings,
        HttpSettings,
        CacheSettings,
        LnBackendSettings,
        ApiSettings,
        ClientSettings,
        ):
    version: str = Field(default=VERSION)
