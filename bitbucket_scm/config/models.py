from enum import Enum
from typing import Literal
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field


def _parses_as_http_url(url: str) -> bool:
    # urlparse accepts hosts and ports httpx refuses, e.g. "http://bad host:x"
    try:
        httpx.URL(url)
    except httpx.InvalidURL:
        return False
    return True


class ValidationKind(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ValidationKind
    message: str = ""


class ServerConfig(BaseModel):
    id: str
    name: str = ""
    base_url: str = ""
    admin_credential_id: str | None = None

    def validate_config(self) -> ValidationResult:
        """Check that this server entry is usable for remote calls."""
        if not self.name.strip():
            return ValidationResult(
                kind=ValidationKind.ERROR, message=f"Server {self.id!r} has no name"
            )
        parsed = urlparse(self.base_url)
        if (
            parsed.scheme not in ("http", "https")
            or not parsed.netloc
            or not _parses_as_http_url(self.base_url)
        ):
            return ValidationResult(
                kind=ValidationKind.ERROR,
                message=f"Server {self.id!r} has an invalid base URL: {self.base_url!r}",
            )
        if not self.admin_credential_id:
            return ValidationResult(
                kind=ValidationKind.WARNING,
                message=f"Server {self.id!r} has no admin credential",
            )
        return ValidationResult(kind=ValidationKind.OK)


class CredentialConfig(BaseModel):
    id: str
    kind: Literal["token", "username_password", "ssh_key"] = "token"
    username: str | None = None
    secret_env: str


class HttpConfig(BaseModel):
    timeout: float = Field(default=30.0, gt=0)
    retries: int = Field(default=2, ge=0)
    verify_ssl: bool = True


class GitConfig(BaseModel):
    tool: str = "git"


class PluginConfiguration(BaseModel):
    servers: list[ServerConfig] = Field(default_factory=list)
    credentials: list[CredentialConfig] = Field(default_factory=list)
    http: HttpConfig = Field(default_factory=HttpConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    def get_server_by_id(self, server_id: str | None) -> ServerConfig | None:
        if not server_id:
            return None
        for server in self.servers:
            if server.id == server_id:
                return server
        return None
