"""
Refresh dispatcher.

Triggers the ticker-refresh workflow through the GitHub Actions
workflow_dispatch API and returns as soon as GitHub accepts it. The workflow
itself runs elsewhere; nothing here tracks its progress.
"""

from __future__ import annotations

from et.config import Settings
from et.data.fetch_client import GITHUB, RateLimitedFetchClient
from et.exceptions import (
    ConfigurationError,
    ConfigurationErrorKind,
    TransportError,
    UpstreamUnexpectedResponse,
)
from et.logging import get_logger
from et.types import RefreshJob, RefreshJobState

logger = get_logger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
MAX_BODY_CHARS = 500


class RefreshDispatcher:
    """Fire-and-forget trigger for the refresh workflow."""

    def __init__(self, settings: Settings, fetch_client: RateLimitedFetchClient) -> None:
        self.settings = settings
        self.fetch_client = fetch_client

    def dispatch_url(self) -> str:
        s = self.settings
        return (
            f"{GITHUB_API_BASE}/repos/{s.GITHUB_OWNER}/{s.GITHUB_REPO}"
            f"/actions/workflows/{s.GITHUB_WORKFLOW_FILE}/dispatches"
        )

    def _check_configuration(self, ticker: str) -> None:
        if not self.settings.GITHUB_ACTIONS_TOKEN:
            raise ConfigurationError(
                "GitHub Actions not configured. Please set GITHUB_ACTIONS_TOKEN.",
                kind=ConfigurationErrorKind.MISSING_CREDENTIALS,
                context={"ticker": ticker},
            )
        if not self.settings.GITHUB_OWNER or not self.settings.GITHUB_REPO:
            raise ConfigurationError(
                "GitHub repository not configured. Please set GITHUB_OWNER and GITHUB_REPO.",
                kind=ConfigurationErrorKind.MISSING_REPOSITORY,
                context={"ticker": ticker},
            )

    async def dispatch(self, ticker: str, triggered_by: str | None) -> RefreshJob:
        """Ask GitHub to run the refresh workflow for ``ticker``.

        Args:
            ticker: Ticker to refresh (upper-cased before sending).
            triggered_by: Identity of the requesting user; "unknown" when absent.

        Returns:
            A job in the ``dispatched`` state.

        Raises:
            ConfigurationError: Missing settings (before any network call), an
                unknown workflow (404) or a rejected token (401).
            UpstreamUnexpectedResponse: Any other answer than an empty 204.
            TransportError: If GitHub could not be reached.
        """
        ticker = ticker.upper()
        identity = triggered_by or "unknown"
        self._check_configuration(ticker)

        logger.info("Dispatching refresh workflow", ticker=ticker, triggered_by=identity)
        try:
            response = await self.fetch_client.fetch(
                GITHUB,
                self.dispatch_url(),
                method="POST",
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {self.settings.GITHUB_ACTIONS_TOKEN}",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                json={
                    "ref": self.settings.GITHUB_REF,
                    "inputs": {"ticker": ticker, "triggered_by": identity},
                },
                retry=False,
            )
        except TransportError as e:
            job = RefreshJob(ticker, identity, RefreshJobState.FAILED, detail=str(e))
            logger.error("Refresh dispatch failed", **job.to_dict())
            raise TransportError(
                "Failed to trigger refresh workflow",
                context={"source": GITHUB, "job": job.to_dict(), "error": e.message},
            ) from e

        status = response.status_code
        body = response.text[:MAX_BODY_CHARS]

        if status == 204 and not body:
            job = RefreshJob(ticker, identity, RefreshJobState.DISPATCHED)
            logger.info("Refresh workflow dispatched", ticker=ticker)
            return job

        job = RefreshJob(
            ticker,
            identity,
            RefreshJobState.REJECTED,
            detail=f"HTTP {status}",
        )
        logger.error("GitHub rejected refresh dispatch", status_code=status, body=body)

        if status == 404:
            raise ConfigurationError(
                "GitHub workflow not found. Check the workflow file and GITHUB_OWNER/GITHUB_REPO.",
                kind=ConfigurationErrorKind.WORKFLOW_NOT_FOUND,
                context={"job": job.to_dict()},
            )
        if status == 401:
            raise ConfigurationError(
                "GitHub authentication failed. Check GITHUB_ACTIONS_TOKEN.",
                kind=ConfigurationErrorKind.INVALID_CREDENTIAL,
                context={"job": job.to_dict()},
            )
        raise UpstreamUnexpectedResponse(
            f"Unexpected response from GitHub Actions: {status}",
            status_code=status,
            body=body,
            context={"job": job.to_dict()},
        )
