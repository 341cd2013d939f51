"""
GitHub repository stats (star count for the page header).
"""

import time
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Tuple

import httpx

from config import settings
from utils.exceptions import AppError, NotFoundError, RateLimitError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
MAX_CACHED_REPOS = 128


@dataclass(frozen=True)
class RepoStats:
    name: str
    full_name: str
    description: str
    stars: int
    forks: int
    watchers: int
    open_issues: int
    url: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["fullName"] = data.pop("full_name")
        data["openIssues"] = data.pop("open_issues")
        return data


def format_star_count(stars: int) -> str:
    """1234 -> '1.2k'; counts under 1000 are returned as-is."""
    if stars >= 1000:
        return f"{stars / 1000:.1f}k"
    return str(stars)


class GitHubService:
    """Fetches repository metadata, cached in memory for a few minutes."""

    def __init__(self, token: Optional[str] = None, cache_seconds: Optional[int] = None):
        self.token = settings.github_token if token is None else token
        self.cache_seconds = settings.github_cache_seconds if cache_seconds is None else cache_seconds
        self._cache: Dict[Tuple[str, str], Tuple[float, RepoStats]] = {}

    async def get_repo(self, owner: str, repo: str) -> RepoStats:
        key = (owner, repo)
        cached = self._cache.get(key)
        if cached and time.monotonic() - cached[0] < self.cache_seconds:
            return cached[1]

        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with httpx.AsyncClient(base_url=GITHUB_API_URL, timeout=10.0) as client:
                response = await client.get(f"/repos/{owner}/{repo}", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"GitHub request failed: {e}")
            raise AppError(f"GitHub API error: {e}")

        if response.status_code == 404:
            raise NotFoundError("Repository not found")
        if response.status_code == 403:
            raise RateLimitError("Rate limit exceeded. Please try again later.")
        if response.status_code >= 400:
            raise AppError(f"GitHub API error: {response.status_code}")

        data = response.json()
        stats = RepoStats(
            name=data.get("name", repo),
            full_name=data.get("full_name", f"{owner}/{repo}"),
            description=data.get("description") or "",
            stars=data.get("stargazers_count") or 0,
            forks=data.get("forks_count") or 0,
            watchers=data.get("watchers_count") or 0,
            open_issues=data.get("open_issues_count") or 0,
            url=data.get("html_url", f"https://github.com/{owner}/{repo}"),
        )
        self._store(key, stats)
        return stats

    def _store(self, key: Tuple[str, str], stats: RepoStats) -> None:
        """Cache a result, dropping expired entries and the oldest ones past the cap."""
        now = time.monotonic()
        for stale in [k for k, (fetched, _) in self._cache.items() if now - fetched >= self.cache_seconds]:
            del self._cache[stale]
        self._cache.pop(key, None)
        while len(self._cache) >= MAX_CACHED_REPOS:
            # dicts keep insertion order, so the first key is the oldest fetch
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (now, stats)
