"""Errors raised by the Bitbucket REST client."""

from __future__ import annotations


class BitbucketClientError(Exception):
    """Wraps transport and HTTP failures with the operation that caused them."""

    def __init__(
        self,
        operation: str,
        message: str,
        status: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.operation = operation
        self.status = status
        self.retryable = retryable
        detail = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{operation} failed{detail}: {message}")


class NotFoundError(BitbucketClientError):
    """The requested project, repository, mirror or path does not exist."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(operation, message, status=404, retryable=False)
