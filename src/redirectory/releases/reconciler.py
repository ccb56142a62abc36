"""
Release Reconciler: maps revision files onto GitHub release assets.

All files of one `name/version` live in one release, whose tag is the
version (or `v` + version). Asset names carry the revision level as a
prefix, see `redirectory.revisions.levels`.

The release is always looked up by tag before it is created. An upload that
fails after creating the release leaves it behind; the next attempt finds and
reuses it instead of creating a duplicate.
"""
import hashlib
import logging
import os
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Union

from redirectory.config.settings import Settings
from redirectory.errors import (
    BadRequestError,
    NotFoundError,
    SizeMismatchError,
    UnsupportedBackendError,
)
from redirectory.releases.github import Release, RemoteAsset
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
from redirectory.revisions.models import Asset, Mode, PackageReference

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".txt": "text/plain",
    ".py": "text/x-python",
    ".tgz": "application/gzip",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

Level = Union[RecipeRevisionLevel, PackageRevisionLevel]


class ReleaseStoreClient(Protocol):
    """The operations the reconciler needs from the release store."""

    def get_authenticated_user(self) -> str: ...
    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Optional[Release]: ...
    def create_release(self, owner: str, repo: str, tag: str) -> Release: ...
    def list_release_assets(self, release: Release) -> List[RemoteAsset]: ...
    def upload_release_asset(
        self,
        release: Release,
        name: str,
        content_type: str,
        content_length: int,
        body: Union[bytes, Iterable[bytes]],
    ) -> RemoteAsset: ...
    def delete_release_asset(self, release: Release, asset_id: int) -> bool: ...


def mime_type(filename: str) -> str:
    return MIME_TYPES.get(os.path.splitext(filename)[1], DEFAULT_MIME_TYPE)


class MeteredBody:
    """
    Passes upload chunks through while counting and hashing them.

    Raises `SizeMismatchError` as soon as the chunks run past the declared
    length, or when they end short of it, which aborts the upload in flight.
    `__len__` reports the declared length so the body is sent with a fixed
    Content-Length.
    """

    def __init__(self, chunks: Iterable[bytes], content_length: int, filename: str):
        self._chunks = iter(chunks)
        self.content_length = content_length
        self.filename = filename
        self.size = 0
        self.md5 = hashlib.md5()

    def __len__(self) -> int:
        return self.content_length

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        try:
            chunk = next(self._chunks)
        except StopIteration:
            if self.size != self.content_length:
                raise self._mismatch() from None
            raise
        self.size += len(chunk)
        if self.size > self.content_length:
            raise self._mismatch()
        self.md5.update(chunk)
        return chunk

    def _mismatch(self) -> SizeMismatchError:
        return SizeMismatchError(
            f"Declared {self.content_length} bytes for '{self.filename}' but received {self.size}"
        )


class ReleaseReconciler:
    """Bridges Revision Store file entries and remote release assets."""

    def __init__(self, client: ReleaseStoreClient, settings: Settings):
        self.client = client
        self.supported_host = settings.supported_host

    def check_backend(self, ref: PackageReference) -> None:
        if ref.host != self.supported_host:
            raise UnsupportedBackendError(f"Not a GitHub package: '{ref}'")

    def get_release(self, ref: PackageReference, mode: Mode = Mode.READ_ONLY) -> Release:
        """
        Find the release for `ref.version`, trying the `v`-prefixed tag second.

        Under `Mode.CREATE` a missing release is created with the bare version
        as its tag. Nothing here depends on local state, so the call can be
        repeated after any partial failure.
        """
        self.check_backend(ref)
        owner, repo, version = ref.owner, ref.repo, ref.version
        for tag in (version, f"v{version}"):
            release = self.client.get_release_by_tag(owner, repo, tag)
            if release is not None:
                logger.debug(f"Found release {owner}/{repo}@{tag} (id {release.id})")
                return release
        if mode is not Mode.CREATE:
            raise NotFoundError(f"Cannot find release: '{ref}'")
        logger.info(f"Creating release {owner}/{repo}@{version}")
        return self.client.create_release(owner, repo, version)

    def get_assets(self, level: Level, release: Release) -> Dict[str, RemoteAsset]:
        """The release's assets that belong to `level`, keyed by filename."""
        prefix = level.asset_prefix
        return {
            asset.name[len(prefix):]: asset
            for asset in self.client.list_release_assets(release)
            if asset.name.startswith(prefix)
        }

    def put_file(
        self,
        release: Release,
        level: Level,
        filename: str,
        body: Union[bytes, Iterable[bytes]],
        content_length: Optional[int] = None,
    ) -> Asset:
        """
        Stream one file into a new asset and describe it for the Revision Store.

        `body` is either the whole file or its chunks; chunks need the declared
        `content_length`. An asset already holding this name is a re-upload or
        is left over from an upload that was never recorded; it is deleted first.
        """
        self.check_backend(level.reference)
        if isinstance(body, bytes):
            if content_length is None:
                content_length = len(body)
            body = [body]
        elif content_length is None:
            raise BadRequestError("Missing header: Content-Length")
        name = level.asset_name(filename)
        stale = self.get_assets(level, release).get(filename)
        if stale is not None:
            logger.warning(f"Replacing existing asset {name} (id {stale.id})")
            self.delete_asset(release, stale.id)
        metered = MeteredBody(body, content_length, filename)
        if content_length == 0:
            # An empty body must still be drained to catch a client that sent bytes.
            for _ in metered:
                pass
            payload = b""
        else:
            payload = metered
        remote = self.client.upload_release_asset(
            release, name, mime_type(filename), content_length, payload
        )
        logger.info(f"Uploaded {name} to {release.owner}/{release.repo}@{release.tag}")
        return Asset(
            name=remote.name,
            md5=metered.md5.hexdigest(),
            url=remote.url,
            id=remote.id,
        )

    def delete_asset(self, release: Release, asset_id: int) -> None:
        self.client.delete_release_asset(release, asset_id)

    def delete_assets(self, ref: PackageReference, assets: Iterable[Asset]) -> int:
        """
        Delete every given asset from the release of `ref`; returns how many were issued.

        A release that no longer exists took its assets with it.
        """
        assets = list(assets)
        if not assets:
            return 0
        try:
            release = self.get_release(ref, Mode.READ_ONLY)
        except NotFoundError:
            logger.warning(f"Release of {ref} is gone; treating its {len(assets)} assets as deleted")
            return 0
        for asset in assets:
            self.delete_asset(release, asset.id)
        logger.info(f"Deleted {len(assets)} assets from {ref}")
        return len(assets)
