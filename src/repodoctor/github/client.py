"""Minimal GitHub REST client for the activity streams the alert engine reads.

Only the four calls the collector needs are implemented:

    GET /repos/{owner}/{repo}/commits
    GET /repos/{owner}/{repo}/pulls
    GET /repos/{owner}/{repo}/issues
    GET /search/issues            (total_count only)

Uses only Python stdlib (urllib.request). Rate limiting is left to GitHub's
own secondary limits; callers bound consumption with page caps.
"""
from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from ..errors import HostingApiError, InvalidRepoError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "repodoctor/1.0"


@dataclass(frozen=True)
class RepoRef:
    """An ``owner/name`` repository identifier."""

    owner: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "RepoRef":
        parts = [part.strip() for part in str(value).split("/")]
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InvalidRepoError(f"Invalid repo format {value!r}; expected owner/name")
        return cls(owner=parts[0], name=parts[1])

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class HostingClient:
    """Base class / Protocol for repository-hosting API clients.

    Every list call returns one page of raw JSON objects as decoded from the
    API. Implementations raise HostingApiError on any failure.
    """

    def list_commits(self, repo: RepoRef, per_page: int = 1, page: int = 1) -> list[dict[str, Any]]:
        raise NotImplementedError

    def list_pulls(
        self,
        repo: RepoRef,
        state: str = "open",
        sort: str = "updated",
        direction: str = "asc",
        per_page: int = 100,
        page: int = 1,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def list_issues(
        self,
        repo: RepoRef,
        state: str = "all",
        since: str | None = None,
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def search_issue_count(self, query: str) -> int:
        raise NotImplementedError


class GitHubClient(HostingClient):
    """GitHub REST v3 implementation of HostingClient.

    Args:
        token:    Personal access or app token. Empty means anonymous.
        base_url: API root, override for GitHub Enterprise.
        timeout:  Socket timeout in seconds; a timeout is a failure.
    """

    def __init__(self, token: str = "", base_url: str = GITHUB_API_URL, timeout: float = 10.0) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def list_commits(self, repo: RepoRef, per_page: int = 1, page: int = 1) -> list[dict[str, Any]]:
        return self._get(
            f"/repos/{repo.owner}/{repo.name}/commits",
            {"per_page": per_page, "page": page},
        )

    def list_pulls(
        self,
        repo: RepoRef,
        state: str = "open",
        sort: str = "updated",
        direction: str = "asc",
        per_page: int = 100,
        page: int = 1,
    ) -> list[dict[str, Any]]:
        return self._get(
            f"/repos/{repo.owner}/{repo.name}/pulls",
            {"state": state, "sort": sort, "direction": direction, "per_page": per_page, "page": page},
        )

    def list_issues(
        self,
        repo: RepoRef,
        state: str = "all",
        since: str | None = None,
        sort: str = "updated",
        direction: str = "desc",
        per_page: int = 100,
        page: int = 1,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "state": state,
            "sort": sort,
            "direction": direction,
            "per_page": per_page,
            "page": page,
        }
        if since:
            params["since"] = since
        return self._get(f"/repos/{repo.owner}/{repo.name}/issues", params)

    def search_issue_count(self, query: str) -> int:
        data = self._get("/search/issues", {"q": query, "per_page": 1})
        total = data.get("total_count") if isinstance(data, dict) else None
        if isinstance(total, bool) or not isinstance(total, int):
            raise HostingApiError(f"GitHub API /search/issues returned no total_count: {str(data)[:120]}")
        return total

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}?{urllib.parse.urlencode(params)}"
        req = urllib.request.Request(url, headers=self._headers(), method="GET")
        logger.debug("GET %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise HostingApiError(f"GitHub API {path} returned HTTP {exc.code}", status=exc.code) from exc
        except (OSError, ValueError, http.client.HTTPException) as exc:
            raise HostingApiError(f"GitHub API {path} failed: {exc}") from exc
