"""Links into the Bitbucket Server web UI for a repository."""

from enum import Enum
from urllib.parse import quote


class BitbucketLinkType(Enum):
    BRANCH = "View Branch"
    REPO = "Browse Repo"

    @property
    def display_name(self) -> str:
        return self.value


def repository_url_from_self_link(self_link: str) -> str:
    """Strip the trailing ``/browse`` from a repository self link."""
    index = self_link.find("/browse")
    return self_link[:index] if index > 0 else ""


class StashBrowser:
    """Builds web links for commits, files and branches of one repository."""

    def __init__(self, repository_url: str) -> None:
        self.repository_url = repository_url.rstrip("/")

    def changeset_url(self, commit: str) -> str:
        return f"{self.repository_url}/commits/{commit}"

    def file_url(self, path: str, ref: str | None = None) -> str:
        url = f"{self.repository_url}/browse/{quote(path.lstrip('/'), safe='/')}"
        if ref:
            url += f"?at={quote(ref, safe='')}"
        return url

    def branch_url(self, branch: str) -> str:
        return f"{self.repository_url}/browse?at={quote(branch, safe='')}"

    def links(self, branch: str | None = None) -> list[tuple[BitbucketLinkType, str]]:
        result = [(BitbucketLinkType.REPO, f"{self.repository_url}/browse")]
        if branch:
            result.append((BitbucketLinkType.BRANCH, self.branch_url(branch)))
        return result

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StashBrowser) and other.repository_url == self.repository_url

    def __hash__(self) -> int:
        return hash(self.repository_url)

    def __repr__(self) -> str:
        return f"StashBrowser({self.repository_url!r})"
