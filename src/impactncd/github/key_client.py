"""GitHub REST client for the authenticated user's SSH keys."""

from __future__ import annotations

import logging

import httpx

from impactncd.shared.exceptions import GitHubError

logger = logging.getLogger(__name__)


class GitHubKeyClient:
    """Register and remove SSH public keys on a GitHub account.

    Used by automated flows that need a throwaway deploy key.
    """

    def __init__(self, token: str, *, base_url: str = "https://api.github.com", timeout: int = 30) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def add_key(self, title: str, public_key: str) -> int:
        """Register ``public_key`` and return its numeric id.

        Raises:
            GitHubError: If the request fails or the response has no id.
        """
        url = f"{self._base_url}/user/keys"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                payload = {"title": title, "key": public_key.strip()}
                resp = await client.post(url, headers=self._headers(), json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise GitHubError(f"GitHub returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise GitHubError(f"GitHub request failed: {exc}") from exc

        key_id = data.get("id")
        if not isinstance(key_id, int):
            raise GitHubError(f"GitHub response has no key id: {data!r}")
        logger.info("registered github key %r as id %d", title, key_id)
        return key_id

    async def remove_key(self, key_id: int) -> None:
        """Delete key ``key_id``.

        Raises:
            GitHubError: If the request fails.
        """
        url = f"{self._base_url}/user/keys/{key_id}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.delete(url, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GitHubError(f"GitHub returned {exc.response.status_code}: {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise GitHubError(f"GitHub request failed: {exc}") from exc
        logger.info("removed github key id %d", key_id)
