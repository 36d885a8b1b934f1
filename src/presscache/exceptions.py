"""
Custom exceptions for the presscache application.

This module defines the error taxonomy used by the image cache. Failures
below the image cache service (fetching, naming, mapping) are classified
with these exceptions; only ``ResolutionFailedError`` is allowed to cross
into the proxy endpoint, which turns it into a placeholder response.
"""

from __future__ import annotations


class PresscacheError(Exception):
    """Base exception for all presscache errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize PresscacheError.

        Parameters
        ----------
        message : str
            Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class UnsupportedSchemeError(PresscacheError):
    """
    Exception raised when a source URL is not an http(s) URL.

    This is a permanent failure: the fetcher rejects the URL before any
    network access and callers must not retry.

    Attributes
    ----------
    url : str
        The rejected source URL.
    scheme : str
        The scheme that was found (empty string when none).
    """

    def __init__(self, url: str, scheme: str = "") -> None:
        """
        Initialize UnsupportedSchemeError.

        Parameters
        ----------
        url : str
            The rejected source URL.
        scheme : str, optional
            The scheme that was found (default: "").
        """
        self.url = url
        self.scheme = scheme
        super().__init__(
            f"Unsupported URL scheme '{scheme or '<none>'}' for source URL: {url}"
        )


class FetchFailedError(PresscacheError):
    """
    Exception raised when an upstream fetch does not produce an image.

    Carries the upstream HTTP status code when there was one. ``404`` and
    ``410`` mean the resource is gone and are never retried; server errors,
    rate limiting and transport failures are eligible for a single retry.

    Attributes
    ----------
    url : str
        The source URL that was fetched.
    status_code : int | None
        Upstream HTTP status, or ``None`` for transport-level failures.
    retryable : bool
        Whether the caller may retry the fetch once.

    Examples
    --------
    >>> try:
    ...     result = await fetcher.fetch(url)
    ... except FetchFailedError as e:
    ...     if e.retryable:
    ...         result = await fetcher.fetch(url)
    """

    def __init__(
        self,
        url: str,
        status_code: int | None = None,
        retryable: bool = False,
        reason: str | None = None,
    ) -> None:
        """
        Initialize FetchFailedError.

        Parameters
        ----------
        url : str
            The source URL that was fetched.
        status_code : int | None, optional
            Upstream HTTP status code (default: None).
        retryable : bool, optional
            Whether the failure is transient (default: False).
        reason : str | None, optional
            Short machine-readable reason (default: derived from status).
        """
        self.url = url
        self.status_code = status_code
        self.retryable = retryable
        self.reason = reason or (
            f"status_{status_code}" if status_code is not None else "transport_error"
        )
        super().__init__(f"Failed to fetch {url}: {self.reason}")

    @property
    def is_gone(self) -> bool:
        """Whether the upstream reported the resource as permanently gone."""
        return self.status_code in (404, 410)


class FetchTimeoutError(PresscacheError):
    """
    Exception raised when an upstream fetch exceeds its time budget.

    Timeouts are treated as transient and are eligible for a single retry.

    Attributes
    ----------
    url : str
        The source URL that timed out.
    timeout : float
        The timeout that was applied, in seconds.
    """

    retryable = True

    def __init__(self, url: str, timeout: float) -> None:
        """
        Initialize FetchTimeoutError.

        Parameters
        ----------
        url : str
            The source URL that timed out.
        timeout : float
            The timeout that was applied, in seconds.
        """
        self.url = url
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.1f}s fetching {url}")


class MappingConflictError(PresscacheError):
    """
    Exception raised when the URL mapping would be silently rewritten.

    Raised when a source URL is already mapped to a different local filename,
    or when a local filename is already owned by a different source URL.
    This indicates hash or extension-detection drift, or a bad manual edit of
    the mapping files, and is never resolved automatically.

    Attributes
    ----------
    source_url : str
        The URL being recorded.
    existing_filename : str | None
        The filename the URL is currently mapped to, if any.
    requested_filename : str
        The filename the caller tried to record.
    existing_url : str | None
        The URL that currently owns ``requested_filename``, if any.
    """

    def __init__(
        self,
        source_url: str,
        requested_filename: str,
        existing_filename: str | None = None,
        existing_url: str | None = None,
    ) -> None:
        """
        Initialize MappingConflictError.

        Parameters
        ----------
        source_url : str
            The URL being recorded.
        requested_filename : str
            The filename the caller tried to record.
        existing_filename : str | None, optional
            The filename the URL is currently mapped to (default: None).
        existing_url : str | None, optional
            The URL that currently owns ``requested_filename`` (default: None).
        """
        self.source_url = source_url
        self.requested_filename = requested_filename
        self.existing_filename = existing_filename
        self.existing_url = existing_url
        if existing_filename is not None:
            message = (
                f"Source URL {source_url} is already mapped to "
                f"{existing_filename}; refusing to remap to {requested_filename}"
            )
        else:
            message = (
                f"Filename {requested_filename} is already owned by "
                f"{existing_url}; refusing to assign it to {source_url}"
            )
        super().__init__(message)


class ResolutionFailedError(PresscacheError):
    """
    Exception raised when no servable bytes can be produced for a URL.

    Neither a fresh nor a stale copy is available. The proxy endpoint turns
    this into a placeholder image.

    Attributes
    ----------
    url : str
        The source URL (or raw input) that could not be resolved.
    reason : str
        Short machine-readable reason.
    """

    def __init__(self, url: str, reason: str = "unavailable") -> None:
        """
        Initialize ResolutionFailedError.

        Parameters
        ----------
        url : str
            The source URL (or raw input) that could not be resolved.
        reason : str, optional
            Short machine-readable reason (default: "unavailable").
        """
        self.url = url
        self.reason = reason
        super().__init__(f"Could not resolve image for {url}: {reason}")


__all__ = [
    "PresscacheError",
    "UnsupportedSchemeError",
    "FetchFailedError",
    "FetchTimeoutError",
    "MappingConflictError",
    "ResolutionFailedError",
]
