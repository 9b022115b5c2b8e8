from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable, List

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class IceServer(BaseModel):
    """Representation of a WebRTC ICE server configuration."""

    urls: list[str] = Field(default_factory=list, description="ICE server URLs")
    username: str | None = Field(default=None, description="Optional TURN username")
    credential: str | None = Field(default=None, description="Optional TURN credential")

    @model_validator(mode="before")
    @classmethod
    def coerce_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"urls": [value]}
        if isinstance(value, (list, tuple)):
            return {"urls": list(value)}
        return value

    @field_validator("urls", mode="before")
    @classmethod
    def ensure_list(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple, set)):
            return [str(item) for item in value]
        return [] if value in (None, Ellipsis) else [str(value)]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Rendezvous Signaling", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=False, env="DEBUG", description="Enable debug mode")
    log_level: str = Field(default="INFO", env="LOG_LEVEL", description="Root logging level")

    host: str = Field(default="0.0.0.0", env="HOST", description="Interface the server binds to")
    port: int = Field(default=3000, env="PORT", description="Listening port")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=None,
        env="CORS_ALLOW_ORIGIN_REGEX",
        description="Optional regular expression that matches allowed CORS origins",
    )

    couchdb_url: str | None = Field(
        default=None,
        env="COUCHDB_URL",
        description="CouchDB connection string; room persistence is disabled when unset.",
    )
    couchdb_database: str = Field(default="webrtc_rooms", env="COUCHDB_DATABASE")
    persistence_queue_size: int = Field(
        default=256,
        env="PERSISTENCE_QUEUE_SIZE",
        description="Maximum number of pending room snapshots before new ones are dropped.",
    )
    persistence_timeout_seconds: float = Field(
        default=10.0,
        env="PERSISTENCE_TIMEOUT_SECONDS",
        description="Timeout for document store requests and for draining on shutdown.",
    )

    static_root: Path | None = Field(
        default=None,
        env="STATIC_ROOT",
        description="Directory with the browser client, served at '/' when set.",
    )

    webrtc_ice_servers: Annotated[list[IceServer], NoDecode] = Field(
        default_factory=list,
        env="WEBRTC_ICE_SERVERS",
        description="List of ICE (STUN/TURN) servers available to WebRTC peers.",
    )
    webrtc_stun_servers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [
            "stun:stun.l.google.com:19302",
            "stun:stun1.l.google.com:19302",
        ],
        env="WEBRTC_STUN_SERVERS",
        description="STUN endpoints exposed to clients.",
    )
    webrtc_turn_servers: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        env="WEBRTC_TURN_SERVERS",
        description="TURN endpoints exposed to clients.",
    )
    webrtc_turn_username: str | None = Field(default=None, env="WEBRTC_TURN_USERNAME")
    webrtc_turn_credential: str | None = Field(default=None, env="WEBRTC_TURN_CREDENTIAL")

    vision_api_url: AnyHttpUrl | None = Field(
        default=None,
        env="VISION_API_URL",
        description="OpenAI compatible chat completions endpoint used for image analysis.",
    )
    vision_api_key: str | None = Field(default=None, env="VISION_API_KEY")
    vision_model: str = Field(default="gpt-4o-mini", env="VISION_MODEL")
    vision_prompt: str = Field(
        default="Describe what you see in this image.",
        env="VISION_PROMPT",
        description="Prompt used when the caller does not send one.",
    )
    vision_timeout_seconds: float = Field(default=30.0, env="VISION_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("couchdb_url", "static_root", "vision_api_url", mode="before")
    @classmethod
    def blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("static_root", mode="after")
    @classmethod
    def resolve_static_root(cls, value: Path | None) -> Path | None:
        return value.resolve() if value is not None else None

    @field_validator(
        "webrtc_ice_servers",
        "webrtc_stun_servers",
        "webrtc_turn_servers",
        mode="before",
    )
    @classmethod
    def parse_iterable_field(cls, value: Any) -> list[Any] | Any:
        if value in (None, "", Ellipsis):
            return []
        if isinstance(value, str):
            try:
                import json

                parsed = json.loads(value)
                if isinstance(parsed, (list, tuple, set)):
                    return list(parsed)
            except json.JSONDecodeError:
                return [item.strip() for item in value.split(",") if item.strip()]
            return [str(value)]
        if isinstance(value, (list, tuple, set)):
            return list(value)
        return [value]

    def _aggregate_ice_servers(self) -> list[IceServer]:
        def coerce_server(entry: Any) -> IceServer | None:
            if isinstance(entry, IceServer):
                return entry
            if isinstance(entry, dict):
                return IceServer.model_validate(entry)
            if isinstance(entry, str):
                return IceServer(urls=[entry])
            if isinstance(entry, Iterable):
                return IceServer(urls=[str(item) for item in entry])
            return None

        servers: list[IceServer] = []
        for item in self.webrtc_ice_servers:
            server = coerce_server(item)
            if server is not None:
                servers.append(server)

        if self.webrtc_stun_servers:
            servers.append(IceServer(urls=[str(url) for url in self.webrtc_stun_servers]))

        if self.webrtc_turn_servers:
            servers.append(
                IceServer(
                    urls=[str(url) for url in self.webrtc_turn_servers],
                    username=self.webrtc_turn_username,
                    credential=self.webrtc_turn_credential,
                )
            )

        if not servers:
            servers.append(IceServer(urls=["stun:stun.l.google.com:19302"]))

        return servers

    @property
    def webrtc_ice_servers_payload(self) -> list[dict[str, Any]]:
        return [
            server.model_dump(mode="json", exclude_none=True)
            for server in self._aggregate_ice_servers()
        ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
