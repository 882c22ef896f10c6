"""Pydantic models for resolved credentials."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr


class Credential(BaseModel):
    """A credential ready to authenticate against a Bitbucket Server instance."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: Literal["token", "username_password", "ssh_key"]
    secret: SecretStr
    username: str | None = None

    def auth_headers(self) -> dict[str, str]:
        """Headers for REST calls. SSH keys authenticate git, not the REST API."""
        if self.kind == "token":
            return {"Authorization": f"Bearer {self.secret.get_secret_value()}"}
        return {}

    def basic_auth(self) -> tuple[str, str] | None:
        if self.kind == "username_password" and self.username:
            return (self.username, self.secret.get_secret_value())
        return None
