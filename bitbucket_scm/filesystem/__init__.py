"""Lightweight, clone-free access to repository content."""

from bitbucket_scm.filesystem.provider import LightweightFilesystemProvider
from bitbucket_scm.filesystem.view import UNKNOWN_LAST_MODIFIED, FileNode, FilesystemView

__all__ = [
    "UNKNOWN_LAST_MODIFIED",
    "FileNode",
    "FilesystemView",
    "LightweightFilesystemProvider",
]
