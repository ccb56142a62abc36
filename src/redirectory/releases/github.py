"""Client for GitHub releases and release assets, the store that holds the bytes."""

import logging
from typing import Dict, Iterable, List, Optional, Union

import requests
from pydantic import BaseModel

from redirectory.config.settings import Settings
from redirectory.errors import RemoteStoreError, UnauthorizedError
from redirectory.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)


class Release(BaseModel):
    """A release, identified by (owner, repo, tag)."""
    id: int
    owner: str
    repo: str
    tag: str
    upload_url: str


class RemoteAsset(BaseModel):
    """One asset as listed or created by the release store."""
    id: int
    name: str
    url: str
    checksum: Optional[str] = None


def _release_from_json(owner: str, repo: str, data: dict) -> Release:
    # upload_url is a URI template: ".../assets{?name,label}"
    upload_url = data["upload_url"].split("{", 1)[0]
    return Release(id=data["id"], owner=owner, repo=repo, tag=data["tag_name"], upload_url=upload_url)


def _asset_from_json(data: dict) -> RemoteAsset:
    return RemoteAsset(
        id=data["id"],
        name=data["name"],
        url=data["browser_download_url"],
        checksum=data.get("digest"),
    )


class GitHubClient:
    """
    Thin wrapper over the GitHub REST endpoints the registry needs.

    Every call carries the caller's own token; this server holds no GitHub
    credential of its own.
    """

    def __init__(self, token: str, settings: Settings, session: Optional[requests.Session] = None):
        self.api_url = settings.github_api_url
        self.timeout = settings.github_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": settings.github_api_version,
        })

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {str(e)}")
            raise RemoteStoreError(f"Release store unreachable: {str(e)}") from e

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        if response.ok:
            return
        logger.error(f"GitHub rejected {action}: {response.status_code} {response.text[:200]}")
        raise RemoteStoreError(
            f"GitHub rejected {action}: {response.status_code}",
            upstream_status=response.status_code,
        )

    @log_execution_time
    def get_authenticated_user(self) -> str:
        """Return the login that owns the token."""
        response = self._request("GET", f"{self.api_url}/user")
        if response.status_code == 401:
            raise UnauthorizedError("Invalid GitHub token")
        self._raise_for_status(response, "user lookup")
        return response.json()["login"]

    @log_execution_time
    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Optional[Release]:
        response = self._request("GET", f"{self.api_url}/repos/{owner}/{repo}/releases/tags/{tag}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"release lookup {owner}/{repo}@{tag}")
        return _release_from_json(owner, repo, response.json())

    @log_execution_time
    def create_release(self, owner: str, repo: str, tag: str) -> Release:
        response = self._request(
            "POST",
            f"{self.api_url}/repos/{owner}/{repo}/releases",
            json={"tag_name": tag, "name": tag},
        )
        self._raise_for_status(response, f"release creation {owner}/{repo}@{tag}")
        logger.info(f"Created release {owner}/{repo}@{tag}")
        return _release_from_json(owner, repo, response.json())

    @log_execution_time
    def list_release_assets(self, release: Release) -> List[RemoteAsset]:
        """All assets of a release, following pagination."""
        assets: List[RemoteAsset] = []
        url: Optional[str] = f"{self.api_url}/repos/{release.owner}/{release.repo}/releases/{release.id}/assets"
        params: Optional[Dict[str, int]] = {"per_page": 100}
        while url:
            response = self._request("GET", url, params=params)
            self._raise_for_status(response, f"asset listing of release {release.id}")
            assets.extend(_asset_from_json(item) for item in response.json())
            url = response.links.get("next", {}).get("url")
            # The `next` link already carries the query string.
            params = None
        return assets

    @log_execution_time
    def upload_release_asset(
        self,
        release: Release,
        name: str,
        content_type: str,
        content_length: int,
        body: Union[bytes, Iterable[bytes]],
    ) -> RemoteAsset:
        """
        Upload one asset. An iterable body is streamed; it must report
        `content_length` through `len()` so no chunked encoding is used.
        """
        response = self._request(
            "POST",
            release.upload_url,
            params={"name": name},
            headers={"Content-Type": content_type, "Content-Length": str(content_length)},
            data=body,
        )
        self._raise_for_status(response, f"upload of {name}")
        return _asset_from_json(response.json())

    @log_execution_time
    def delete_release_asset(self, release: Release, asset_id: int) -> bool:
        """Delete one asset. Returns False if it was already gone."""
        response = self._request(
            "DELETE", f"{self.api_url}/repos/{release.owner}/{release.repo}/releases/assets/{asset_id}"
        )
        if response.status_code == 404:
            logger.warning(f"Asset {asset_id} of {release.owner}/{release.repo} was already deleted")
            return False
        self._raise_for_status(response, f"deletion of asset {asset_id}")
        return True
