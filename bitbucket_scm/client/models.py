"""Pydantic models for Bitbucket Server REST data."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RepositoryState(str, Enum):
    AVAILABLE = "AVAILABLE"
    INITIALISING = "INITIALISING"
    INITIALISATION_FAILED = "INITIALISATION_FAILED"


class NamedLink(BaseModel):
    """A labelled link, e.g. a clone URL named ``http`` or ``ssh``."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    href: str


class BitbucketProject(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    self_link: str | None = None


class BitbucketRepository(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str
    project: BitbucketProject
    state: RepositoryState = RepositoryState.AVAILABLE
    clone_urls: list[NamedLink] = Field(default_factory=list)
    self_link: str = ""


class MirrorServer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    enabled: bool = True
    base_url: str | None = None


class MirroredRepositoryDescriptor(BaseModel):
    """Registration of a repository on one mirror, as reported by the upstream."""

    model_config = ConfigDict(frozen=True)

    mirror_server: MirrorServer
    self_link: str


class MirroredRepository(BaseModel):
    """Repository details reported by the mirror itself."""

    model_config = ConfigDict(frozen=True)

    available: bool
    mirror_name: str
    repository_id: str
    status: str = ""
    clone_urls: list[NamedLink] = Field(default_factory=list)


class DirectoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    kind: Literal["file", "directory"]
