"""Pydantic models for SCM configuration and repository resolution."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

R_HEADS = "refs/heads/"
R_TAGS = "refs/tags/"

PLACEHOLDER_REPOSITORY_ID = -1


class CloneProtocol(str, Enum):
    """Clone protocols; values match the names of the server's clone links."""

    HTTP = "http"
    SSH = "ssh"


class CloneEndpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol: CloneProtocol
    url: str = ""


class RepositoryReference(BaseModel):
    """Identity of the repository a job checks out.

    An empty mirror_name means the primary server is the source of truth.
    """

    model_config = ConfigDict(frozen=True)

    credential_id: str | None = None
    ssh_credential_id: str | None = None
    project_name: str = ""
    project_key: str = ""
    repository_name: str = ""
    repository_slug: str = ""
    server_id: str = ""
    mirror_name: str = ""

    @property
    def is_personal(self) -> bool:
        return self.project_key.startswith("~")

    @property
    def configured_project_name(self) -> str:
        """The project name as it should be persisted back into configuration."""
        return self.project_key if self.is_personal else self.project_name


class PlaceholderReason(str, Enum):
    UNKNOWN_SERVER = "unknown_server"
    BLANK_PROJECT = "blank_project"
    BLANK_REPOSITORY = "blank_repository"
    MIRROR_UNAVAILABLE = "mirror_unavailable"
    NOT_FOUND = "not_found"
    REMOTE_ERROR = "remote_error"


class ResolvedRepository(BaseModel):
    """A repository found on the server (or mirror), ready for checkout."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["resolved"] = "resolved"
    reference: RepositoryReference
    repository_id: int
    clone_endpoint: CloneEndpoint
    repository_url: str = ""

    @property
    def is_placeholder(self) -> bool:
        return False


class PlaceholderRepository(BaseModel):
    """Stands in for a repository that could not be resolved.

    Keeps the owning configuration constructible; the reason says why.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["placeholder"] = "placeholder"
    reference: RepositoryReference
    repository_id: Literal[-1] = PLACEHOLDER_REPOSITORY_ID
    clone_endpoint: CloneEndpoint
    repository_url: Literal[""] = ""
    reason: PlaceholderReason
    retryable: bool = False

    @property
    def is_placeholder(self) -> bool:
        return True


RepositoryResolution = Annotated[
    Union[ResolvedRepository, PlaceholderRepository], Field(discriminator="kind")
]


class BranchSpec(BaseModel):
    """A branch specifier as written in job configuration."""

    model_config = ConfigDict(frozen=True)

    name: str

    def is_literal_ref(self) -> bool:
        """True for a single fully qualified branch or tag ref.

        Wildcards and ``:regex`` specs can match several branches, and bare
        names or commit hashes are ambiguous without a clone.
        """
        name = self.name.strip()
        if not name or name.startswith(":"):
            return False
        if any(c in name for c in "*?"):
            return False
        return name.startswith(R_HEADS) or name.startswith(R_TAGS)

    def __str__(self) -> str:
        return self.name


class ScmConfig(BaseModel):
    """Persisted job configuration for a Bitbucket Server SCM."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(default="", validate_default=True)
    branches: list[BranchSpec] = Field(default_factory=list)
    credential_id: str | None = None
    ssh_credential_id: str | None = None
    extensions: list[Any] = Field(default_factory=list)
    git_tool: str | None = None
    project_name: str | None = None
    repository_name: str | None = None
    server_id: str | None = None
    mirror_name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return str(uuid.uuid4())
        return value

    @field_validator("branches", mode="before")
    @classmethod
    def _coerce_branches(cls, value: Any) -> Any:
        if value is None:
            return []
        return [BranchSpec(name=b) if isinstance(b, str) else b for b in value]


class BranchHead(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["branch"] = "branch"
    name: str

    @property
    def ref(self) -> str:
        return f"{R_HEADS}{self.name}"


class TagHead(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["tag"] = "tag"
    name: str

    @property
    def ref(self) -> str:
        return f"{R_TAGS}{self.name}"


class PullRequestHead(BaseModel):
    """A pull request head. It has no single ref usable for lightweight access."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pull_request"] = "pull_request"
    name: str
    pull_request_id: int
    target: str = ""

    @property
    def ref(self) -> None:
        return None


ScmHead = Annotated[Union[BranchHead, TagHead, PullRequestHead], Field(discriminator="kind")]


class ScmRevision(BaseModel):
    model_config = ConfigDict(frozen=True)

    head: ScmHead
    hash: str = ""


class BranchSource(BaseModel):
    """Branch-source (multibranch) configuration for one repository."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", validate_default=True)
    server_id: str | None = None
    credential_id: str | None = None
    ssh_credential_id: str | None = None
    project_name: str | None = None
    repository_name: str | None = None
    mirror_name: str | None = None
    repository: RepositoryResolution | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return str(uuid.uuid4())
        return value
