"""GitHub source — tags, trees and blobs of an upstream repository.

Commands are the ``.md``/``.yaml``/``.yml`` blobs below the commands path
of a tag's tree. Unauthenticated GitHub allows 60 requests per hour, so the
rate limit reported in response headers is tracked in a ``RateLimitState``
owned by the caller and checked before every request.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable
from urllib.parse import quote

import httpx

from cmdsync.errors import NetworkUnreachableError, RemoteProtocolError
from cmdsync.models import Item, RateLimitState, VersionMeta
from cmdsync.sync.filenames import identity_from_path, is_command_file

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_REPO = "humanlayer/humanlayer"
USER_AGENT = "cmdsync"


class GitHubSource:
    """``RemoteSource`` backed by the GitHub REST API."""

    def __init__(
        self,
        repo: str = DEFAULT_REPO,
        commands_path: str = ".claude/commands",
        api_base: str = GITHUB_API_BASE,
        token: str | None = None,
        rate_limit: RateLimitState | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.repo = repo
        self.commands_path = commands_path.strip("/")
        self.api_base = api_base.rstrip("/")
        self.token = token
        self.rate_limit = rate_limit or RateLimitState()
        self.clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self) -> "GitHubSource":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- RemoteSource ----------------------------------------------------

    async def list_versions(self) -> list[VersionMeta]:
        data = await self._get_json(f"/repos/{self.repo}/tags?per_page=100")
        if not isinstance(data, list):
            raise RemoteProtocolError("Unexpected tags payload from GitHub")
        return [VersionMeta.from_dict(tag) for tag in data]

    async def fetch_items(self, version: str) -> list[Item]:
        tree = await self._get_json(
            f"/repos/{self.repo}/git/trees/{quote(version, safe='')}?recursive=1"
        )
        if not isinstance(tree, dict) or not isinstance(tree.get("tree"), list):
            raise RemoteProtocolError(f"Unexpected tree payload for {version}")
        if tree.get("truncated"):
            logger.warning("Tree for %s was truncated by GitHub; some commands may be missing", version)

        prefix = self.commands_path + "/"
        items: list[Item] = []
        for entry in tree["tree"]:
            path = entry.get("path", "")
            if entry.get("type") != "blob" or not path.startswith(prefix):
                continue
            if not is_command_file(path):
                continue
            items.append(
                Item(
                    identity=identity_from_path(path),
                    path=path,
                    content=await self.fetch_blob(entry["sha"]),
                    content_ref=entry["sha"],
                )
            )

        logger.debug("Fetched %d command(s) for %s", len(items), version)
        return items

    async def fetch_blob(self, sha: str) -> str:
        blob = await self._get_json(f"/repos/{self.repo}/git/blobs/{sha}")
        if not isinstance(blob, dict):
            raise RemoteProtocolError(f"Unexpected blob payload for {sha}")
        content = blob.get("content", "")
        if blob.get("encoding") == "base64":
            try:
                return base64.b64decode(content).decode("utf-8")
            except ValueError as exc:
                raise RemoteProtocolError(f"Could not decode blob {sha}: {exc}") from exc
        return content

    async def is_online(self) -> bool:
        """Cheap connectivity probe that does not consume rate limit."""
        try:
            response = await self._client.head(
                f"{self.api_base}/zen", headers={"User-Agent": USER_AGENT}
            )
        except httpx.HTTPError:
            return False
        return response.is_success

    # -- transport -------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_json(self, path: str) -> Any:
        now = self.clock()
        if self.rate_limit.exhausted(now):
            wait = int(self.rate_limit.reset_at - now) + 1
            raise RemoteProtocolError(
                f"GitHub API rate limit exceeded. Resets in {wait} seconds.", 429
            )

        try:
            response = await self._client.get(f"{self.api_base}{path}", headers=self._headers())
        except (httpx.NetworkError, httpx.TimeoutException) as exc:
            raise NetworkUnreachableError(f"Network error: Unable to reach GitHub ({exc})") from exc
        except httpx.HTTPError as exc:
            raise RemoteProtocolError(f"GitHub request failed: {exc}") from exc

        self._update_rate_limit(response)

        if response.status_code >= 400:
            raise RemoteProtocolError(
                f"GitHub API error: {response.status_code} {response.reason_phrase}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteProtocolError(f"Malformed JSON from GitHub: {exc}") from exc

    def _update_rate_limit(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        try:
            if remaining is not None:
                self.rate_limit.remaining = int(remaining)
            if reset is not None:
                self.rate_limit.reset_at = float(reset)
        except ValueError:
            logger.debug("Ignoring malformed rate limit headers: %s / %s", remaining, reset)
