"""Read-only file tree of one repository at one ref, fetched over REST on demand."""

from __future__ import annotations

import posixpath
from typing import Literal

from bitbucket_scm.client.base import FilePathClient, RemoteApiClient
from bitbucket_scm.client.errors import NotFoundError
from bitbucket_scm.scm.models import ScmRevision

# The REST API does not report modification times.
UNKNOWN_LAST_MODIFIED = 0

NodeKind = Literal["file", "directory"]


class FileNode:
    """A file or directory inside a FilesystemView.

    Nothing is fetched until a property or method needs it; the node type is
    looked up once and remembered.
    """

    def __init__(
        self,
        client: FilePathClient,
        ref: str,
        path: str = "",
        kind: NodeKind | None = None,
    ) -> None:
        self._client = client
        self._ref = ref
        self._path = path.strip("/")
        self._kind: NodeKind | None = "directory" if not self._path else kind

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return posixpath.basename(self._path)

    @property
    def ref(self) -> str:
        return self._ref

    @property
    def kind(self) -> NodeKind:
        if self._kind is None:
            try:
                self._kind = self._client.get_type(self._path, self._ref)
            except NotFoundError as e:
                raise FileNotFoundError(f"{self._path} does not exist at {self._ref}") from e
        return self._kind

    def is_file(self) -> bool:
        return self.kind == "file"

    def is_dir(self) -> bool:
        return self.kind == "directory"

    def child(self, name: str) -> FileNode:
        path = posixpath.join(self._path, name.strip("/")) if self._path else name.strip("/")
        return FileNode(self._client, self._ref, path)

    def children(self) -> list[FileNode]:
        if not self.is_dir():
            raise NotADirectoryError(f"{self._path} is not a directory")
        try:
            entries = self._client.list_directory(self._path, self._ref)
        except NotFoundError as e:
            raise FileNotFoundError(f"{self._path or '/'} does not exist at {self._ref}") from e
        return [FileNode(self._client, self._ref, entry.path, entry.kind) for entry in entries]

    def read_bytes(self) -> bytes:
        if self.is_dir():
            raise IsADirectoryError(f"{self._path or '/'} is a directory")
        try:
            return self._client.read_raw(self._path, self._ref)
        except NotFoundError as e:
            raise FileNotFoundError(f"{self._path} does not exist at {self._ref}") from e

    def read_text(self, encoding: str = "utf-8") -> str:
        return self.read_bytes().decode(encoding)

    def last_modified(self) -> int:
        return UNKNOWN_LAST_MODIFIED

    def __repr__(self) -> str:
        return f"FileNode({self._path!r}, ref={self._ref!r})"


class FilesystemView:
    """Lightweight checkout: the repository tree at a single ref."""

    def __init__(
        self,
        client: FilePathClient,
        ref: str,
        revision: ScmRevision | None = None,
        api_client: RemoteApiClient | None = None,
    ) -> None:
        self.client = client
        self.ref = ref
        self.revision = revision
        self._api_client = api_client

    def __enter__(self) -> FilesystemView:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()

    def root(self) -> FileNode:
        return FileNode(self.client, self.ref)

    def child(self, path: str) -> FileNode:
        return self.root().child(path)

    def last_modified(self) -> int:
        return UNKNOWN_LAST_MODIFIED

    def __repr__(self) -> str:
        return f"FilesystemView(ref={self.ref!r})"
