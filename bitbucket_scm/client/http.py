"""Bitbucket Server REST client using httpx."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any, Literal, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from bitbucket_scm.client.errors import BitbucketClientError, NotFoundError
from bitbucket_scm.client.models import (
    BitbucketProject,
    BitbucketRepository,
    DirectoryEntry,
    MirroredRepository,
    MirroredRepositoryDescriptor,
    MirrorServer,
    NamedLink,
    RepositoryState,
)
from bitbucket_scm.config.models import HttpConfig
from bitbucket_scm.credentials.models import Credential

logger = logging.getLogger(__name__)

API_ROOT = "/rest/api/1.0"
MIRRORING_ROOT = "/rest/mirroring/1.0"
PAGE_LIMIT = 100

_RETRYABLE_STATUS = {408, 429, 502, 503, 504}

T = TypeVar("T")


def _links(data: dict, rel: str) -> list[NamedLink]:
    return [
        NamedLink(name=link.get("name"), href=link["href"])
        for link in data.get("links", {}).get(rel, [])
        if link.get("href")
    ]


def _first_href(data: dict, rel: str) -> str:
    links = _links(data, rel)
    return links[0].href if links else ""


def _build_repository(data: dict) -> BitbucketRepository:
    """Convert a REST repository payload to our BitbucketRepository model."""
    project = data.get("project", {})
    return BitbucketRepository(
        id=data["id"],
        name=data["name"],
        slug=data["slug"],
        project=BitbucketProject(
            key=project.get("key", ""),
            name=project.get("name", project.get("key", "")),
            self_link=_first_href(project, "self") or None,
        ),
        state=RepositoryState(data.get("state", RepositoryState.AVAILABLE.value)),
        clone_urls=_links(data, "clone"),
        self_link=_first_href(data, "self"),
    )


def _build_descriptor(data: dict) -> MirroredRepositoryDescriptor:
    server = data.get("mirrorServer", {})
    return MirroredRepositoryDescriptor(
        mirror_server=MirrorServer(
            id=str(server.get("id", "")),
            name=server.get("name", ""),
            enabled=server.get("enabled", True),
            base_url=server.get("baseUrl"),
        ),
        self_link=_first_href(data, "self"),
    )


def _build_mirrored_repository(data: dict) -> MirroredRepository:
    return MirroredRepository(
        available=bool(data.get("available", False)),
        mirror_name=data.get("mirrorName", ""),
        repository_id=str(data.get("repositoryId", "")),
        status=data.get("status", ""),
        clone_urls=_links(data, "clone"),
    )


def _entry_kind(raw_type: str) -> Literal["file", "directory"]:
    return "directory" if raw_type == "DIRECTORY" else "file"


def _build_entry(prefix: str, data: dict) -> DirectoryEntry | None:
    relative = data.get("path", {}).get("toString", "")
    if not relative:
        return None
    full = f"{prefix}/{relative}" if prefix else relative
    return DirectoryEntry(path=full, kind=_entry_kind(data.get("type", "FILE")))


def _convert(operation: str, build: Callable[..., T], *args: Any) -> T:
    """Run a payload builder, reporting an unexpected payload shape as a client error."""
    try:
        return build(*args)
    except (KeyError, TypeError, AttributeError, ValueError, ValidationError) as e:
        raise BitbucketClientError(operation, f"malformed response: {e!r}") from e


class BitbucketClient:
    """Synchronous Bitbucket Server client.

    Every failure surfaces as BitbucketClientError (NotFoundError for 404s) so
    callers only ever deal with one exception family.
    """

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def __enter__(self) -> BitbucketClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _get(self, operation: str, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            resp = self._http.get(url, params=params)
        except httpx.TimeoutException as e:
            raise BitbucketClientError(operation, str(e) or "timed out", retryable=True) from e
        except httpx.HTTPError as e:
            raise BitbucketClientError(
                operation, str(e), retryable=isinstance(e, httpx.TransportError)
            ) from e
        if resp.status_code == 404:
            raise NotFoundError(operation, f"{url} not found")
        if resp.is_error:
            raise BitbucketClientError(
                operation,
                resp.text[:200] or resp.reason_phrase,
                status=resp.status_code,
                retryable=resp.status_code in _RETRYABLE_STATUS or resp.status_code >= 500,
            )
        return resp

    def _get_json(self, operation: str, url: str, params: dict[str, Any] | None = None) -> dict:
        resp = self._get(operation, url, params)
        try:
            data = resp.json()
        except ValueError as e:
            raise BitbucketClientError(operation, f"invalid JSON from {url}") from e
        if not isinstance(data, dict):
            raise BitbucketClientError(
                operation, f"malformed response from {url}: expected an object"
            )
        return data

    def _paged(
        self,
        operation: str,
        url: str,
        params: dict[str, Any] | None = None,
        container: str | None = None,
    ) -> Iterator[dict]:
        """Yield values across a paged response, following nextPageStart."""
        start = 0
        while True:
            query = {**(params or {}), "start": start, "limit": PAGE_LIMIT}
            data = self._get_json(operation, url, query)
            page = data.get(container, {}) if container else data
            values = page.get("values", []) if isinstance(page, dict) else None
            if not isinstance(values, list):
                raise BitbucketClientError(
                    operation, f"malformed response from {url}: expected a page of values"
                )
            yield from values
            if page.get("isLastPage", True) or page.get("nextPageStart") is None:
                return
            start = page["nextPageStart"]

    def get_repository(self, project_name: str, repository_name: str) -> BitbucketRepository:
        """Find a repository by its project's name (or key) and its display name."""
        operation = "get_repository"
        if project_name.startswith("~"):
            # personal projects are only addressable by key
            url = f"{API_ROOT}/projects/{quote(project_name)}/repos"
            candidates = self._paged(operation, url)
        else:
            candidates = self._paged(
                operation,
                f"{API_ROOT}/repos",
                {"projectname": project_name, "name": repository_name},
            )
        wanted_project = project_name.casefold()
        wanted_repo = repository_name.casefold()
        for raw in candidates:
            repo = _convert(operation, _build_repository, raw)
            if repo.name.casefold() != wanted_repo:
                continue
            if wanted_project in (repo.project.name.casefold(), repo.project.key.casefold()):
                return repo
        raise NotFoundError(
            operation, f"repository {repository_name!r} in project {project_name!r} not found"
        )

    def get_repository_by_key(self, project_key: str, repository_slug: str) -> BitbucketRepository:
        url = f"{API_ROOT}/projects/{quote(project_key)}/repos/{quote(repository_slug)}"
        operation = "get_repository_by_key"
        return _convert(operation, _build_repository, self._get_json(operation, url))

    def get_mirrored_repository_descriptors(
        self, repository_id: int
    ) -> list[MirroredRepositoryDescriptor]:
        operation = "get_mirrored_repository_descriptors"
        url = f"{MIRRORING_ROOT}/repos/{repository_id}/mirrors"
        return [
            _convert(operation, _build_descriptor, raw)
            for raw in self._paged(operation, url)
        ]

    def get_mirrored_repository(
        self, descriptor: MirroredRepositoryDescriptor
    ) -> MirroredRepository:
        """Fetch repository details from the mirror the descriptor points at."""
        if not descriptor.self_link:
            raise BitbucketClientError(
                "get_mirrored_repository",
                f"mirror {descriptor.mirror_server.name!r} has no self link",
            )
        data = self._get_json("get_mirrored_repository", descriptor.self_link)
        return _convert("get_mirrored_repository", _build_mirrored_repository, data)

    def get_file_path_client(
        self, project_key: str, repository_slug: str
    ) -> BitbucketFilePathClient:
        return BitbucketFilePathClient(self, project_key, repository_slug)


class BitbucketFilePathClient:
    """Reads file listings and raw content of one repository at a given ref."""

    def __init__(self, client: BitbucketClient, project_key: str, repository_slug: str) -> None:
        self._client = client
        self.project_key = project_key
        self.repository_slug = repository_slug

    def _url(self, resource: str, path: str) -> str:
        base = (
            f"{API_ROOT}/projects/{quote(self.project_key)}"
            f"/repos/{quote(self.repository_slug)}/{resource}"
        )
        path = path.strip("/")
        return f"{base}/{quote(path, safe='/')}" if path else base

    def get_type(self, path: str, ref: str) -> Literal["file", "directory"]:
        data = self._client._get_json(
            "get_type", self._url("browse", path), {"at": ref, "type": "true"}
        )
        return _entry_kind(data.get("type", "FILE"))

    def list_directory(self, path: str, ref: str) -> list[DirectoryEntry]:
        prefix = path.strip("/")
        entries = []
        for raw in self._client._paged(
            "list_directory", self._url("browse", path), {"at": ref}, container="children"
        ):
            entry = _convert("list_directory", _build_entry, prefix, raw)
            if entry is not None:
                entries.append(entry)
        return entries

    def read_raw(self, path: str, ref: str) -> bytes:
        resp = self._client._get("read_raw", self._url("raw", path), {"at": ref})
        return resp.content


class HttpClientFactory:
    """Creates authenticated BitbucketClient instances from the HTTP settings."""

    def __init__(self, config: HttpConfig | None = None) -> None:
        self.config = config or HttpConfig()

    def get_client(self, base_url: str, credential: Credential | None) -> BitbucketClient:
        headers = {"Accept": "application/json"}
        auth = None
        if credential is not None:
            headers.update(credential.auth_headers())
            auth = credential.basic_auth()
        transport = httpx.HTTPTransport(
            retries=self.config.retries, verify=self.config.verify_ssl
        )
        try:
            http = httpx.Client(
                base_url=base_url.rstrip("/"),
                headers=headers,
                auth=auth,
                timeout=self.config.timeout,
                transport=transport,
            )
        except httpx.InvalidURL as e:
            transport.close()
            raise BitbucketClientError("get_client", f"invalid base URL {base_url!r}: {e}") from e
        logger.debug("Created Bitbucket client for %s", base_url)
        return BitbucketClient(http)
