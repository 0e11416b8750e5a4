"""
GitHub release source.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import (
    GITHUB_API_URL,
    RELEASE_CACHE_TTL,
    RELEASES_PER_PAGE,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from .interfaces import ReleaseSource
from .models import FetchFailureReason, FetchResult, ReleaseEvent
from .time_utils import parse_timestamp


logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"(?:https?://)?(?:www\.)?github\.com/([^/]+)/([^/]+)", re.IGNORECASE)
_SLUG_RE = re.compile(r"^([^/]+)/([^/]+)$")


def parse_repo_url(value: str) -> Optional[Tuple[str, str]]:
    """Extract ``(owner, name)`` from a GitHub URL or an ``owner/name`` slug."""
    cleaned = (value or "").strip().rstrip("/")
    match = _URL_RE.search(cleaned) or _SLUG_RE.match(cleaned)
    if not match:
        return None
    owner, name = match.group(1), re.sub(r"\.git$", "", match.group(2))
    if not owner or not name:
        return None
    return owner, name


def release_from_payload(payload: Dict[str, Any]) -> Optional[ReleaseEvent]:
    """Build a ``ReleaseEvent`` from one item of the releases API response."""
    published_at = parse_timestamp(payload.get("published_at"))
    if published_at is None:
        return None
    return ReleaseEvent(
        id=int(payload["id"]),
        tag_name=payload.get("tag_name") or "",
        name=payload.get("name"),
        url=payload.get("html_url") or "",
        published_at=published_at,
        is_draft=bool(payload.get("draft")),
        is_prerelease=bool(payload.get("prerelease")),
        body=payload.get("body"),
    )


@dataclass
class ReleaseCache:
    """Shared HTTP session and short-lived response cache."""

    ttl: float = RELEASE_CACHE_TTL
    entries: Dict[str, Tuple[float, List[ReleaseEvent]]] = field(default_factory=dict)
    session: requests.Session = field(default_factory=requests.Session)

    def lookup(self, key: str) -> Optional[List[ReleaseEvent]]:
        cached = self.entries.get(key)
        if cached and (time.monotonic() - cached[0]) < self.ttl:
            return cached[1]
        return None

    def store(self, key: str, events: List[ReleaseEvent]) -> None:
        self.entries[key] = (time.monotonic(), events)

    def clear(self) -> None:
        self.entries.clear()


class GitHubReleaseSource(ReleaseSource):
    """Fetch published releases from the public GitHub REST API."""

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        token: Optional[str] = None,
        cache: Optional[ReleaseCache] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.cache = cache if cache is not None else ReleaseCache()
        self.timeout = timeout

    def headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch_events(self, repo: str) -> FetchResult:
        """Fetch non-draft releases, newest first as GitHub returns them.

        Failures come back as a ``FetchResult`` carrying a reason; this method
        does not raise for HTTP or network errors.
        """
        parsed = parse_repo_url(repo)
        if parsed is None:
            return FetchResult(
                error=f"Not a GitHub repository: {repo!r}",
                reason=FetchFailureReason.NOT_FOUND,
            )
        owner, name = parsed
        cache_key = f"{owner}/{name}".lower()
        cached = self.cache.lookup(cache_key)
        if cached is not None:
            logger.debug("Cache hit: releases %s", cache_key)
            return FetchResult(events=list(cached))

        url = f"{self.api_url}/repos/{owner}/{name}/releases"
        logger.info("Fetching releases for %s/%s", owner, name)
        try:
            with self.cache.session.get(
                url,
                params={"per_page": RELEASES_PER_PAGE},
                headers=self.headers(),
                timeout=self.timeout,
            ) as response:
                failure = self._failure_for(response)
                if failure is not None:
                    logger.warning("Release fetch for %s/%s failed: %s", owner, name, failure.error)
                    return failure
                payload = response.json()
        except requests.RequestException as e:
            logger.warning("Release fetch for %s/%s failed: %s", owner, name, e)
            return FetchResult(error=str(e), reason=FetchFailureReason.TRANSIENT)
        except ValueError as e:
            logger.warning("Unreadable release payload for %s/%s: %s", owner, name, e)
            return FetchResult(
                error="GitHub returned an unreadable response",
                reason=FetchFailureReason.TRANSIENT,
            )

        if not isinstance(payload, list):
            return FetchResult(
                error="GitHub returned an unexpected response",
                reason=FetchFailureReason.TRANSIENT,
            )

        events = []
        for item in payload:
            if not isinstance(item, dict) or item.get("draft"):
                continue
            try:
                event = release_from_payload(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed release in %s/%s: %s", owner, name, e)
                continue
            if event is not None:
                events.append(event)

        self.cache.store(cache_key, events)
        return FetchResult(events=list(events))

    def _failure_for(self, response: requests.Response) -> Optional[FetchResult]:
        status = response.status_code
        if status == 429 or (
            status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
        ):
            return FetchResult(
                error="GitHub API rate limit exceeded. Try again later or add an evidence link.",
                reason=FetchFailureReason.RATE_LIMITED,
            )
        if status == 404:
            return FetchResult(
                error="Repository not found. Make sure it exists and is public.",
                reason=FetchFailureReason.NOT_FOUND,
            )
        if not response.ok:
            return FetchResult(
                error=f"GitHub API error: {status}",
                reason=FetchFailureReason.TRANSIENT,
            )
        return None
