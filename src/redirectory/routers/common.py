"""
Request flows shared by the v1 and v2 routers.

Remote calls block, so they run in the threadpool. Writers hold the store's
transaction across resolve -> remote calls -> mutate -> save.
"""
import logging
from typing import AsyncIterator, Callable, Dict, Iterator, List, Optional, Tuple, Union

from anyio import from_thread
from fastapi import Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from redirectory.errors import BadRequestError, NotFoundError
from redirectory.releases.github import RemoteAsset
from redirectory.releases.reconciler import ReleaseReconciler
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
from redirectory.revisions.models import LATEST, Asset, Mode, PackageReference
from redirectory.revisions.store import PendingDeletion, RevisionStore

logger = logging.getLogger(__name__)

RevisionLevel = Union[RecipeRevisionLevel, PackageRevisionLevel]


def declared_length(request: Request) -> int:
    """The Content-Length the client declared; uploads must declare one."""
    declared = request.headers.get("content-length")
    if declared is None:
        raise BadRequestError("Missing header: Content-Length")
    try:
        length = int(declared)
    except ValueError:
        raise BadRequestError("Malformed header: Content-Length")
    if length < 0:
        raise BadRequestError("Malformed header: Content-Length")
    return length


def chunks_from_thread(stream: AsyncIterator[bytes]) -> Iterator[bytes]:
    """
    Read an async request body from a worker thread, one chunk at a time.

    Only usable inside `run_in_threadpool`; each chunk is awaited on the
    event loop that owns the request.
    """
    iterator = stream.__aiter__()

    async def next_chunk() -> Optional[bytes]:
        try:
            return await iterator.__anext__()
        except StopAsyncIteration:
            return None

    while True:
        chunk = from_thread.run(next_chunk)
        if chunk is None:
            return
        if chunk:
            yield chunk


def _resolve(
    store: RevisionStore,
    ref: PackageReference,
    rrev: str,
    package_id: Optional[str],
    prev: str,
    mode: Mode,
):
    rrev_cursor = store.resolve_recipe_revision(ref, rrev, mode)
    if package_id is None:
        return rrev_cursor.value, RecipeRevisionLevel(ref, rrev_cursor.value.id)
    prev_cursor = store.resolve_package_revision(ref, rrev_cursor.value.id, package_id, prev, mode)
    level = PackageRevisionLevel(ref, rrev_cursor.value.id, package_id, prev_cursor.value.id)
    return prev_cursor.value, level


async def resolve_level(
    store: RevisionStore,
    ref: PackageReference,
    rrev: str = LATEST,
    package_id: Optional[str] = None,
    prev: str = LATEST,
) -> Tuple[RevisionLevel, Dict[str, Asset]]:
    """Resolve a revision read-only; return its level and a copy of its cached assets."""
    async with store.reading():
        revision, level = _resolve(store, ref, rrev, package_id, prev, Mode.READ_ONLY)
        return level, dict(revision.assets)


async def list_remote_assets(
    reconciler: ReleaseReconciler, level: RevisionLevel
) -> Dict[str, RemoteAsset]:
    release = await run_in_threadpool(reconciler.get_release, level.reference)
    return await run_in_threadpool(reconciler.get_assets, level, release)


def file_sums(remote: Dict[str, RemoteAsset], cached: Dict[str, Asset]) -> Dict[str, str]:
    """Filename to checksum, preferring the md5 recorded at upload time."""
    sums = {}
    for filename, asset in remote.items():
        if filename in cached:
            sums[filename] = cached[filename].md5
        else:
            sums[filename] = asset.checksum or ""
    return sums


async def redirect_to_file(
    store: RevisionStore,
    ref: PackageReference,
    filename: str,
    rrev: str,
    package_id: Optional[str] = None,
    prev: str = LATEST,
) -> RedirectResponse:
    _, assets = await resolve_level(store, ref, rrev, package_id, prev)
    asset = assets.get(filename)
    if asset is None:
        raise NotFoundError(f"File not found: '{filename}'")
    return RedirectResponse(asset.url, status_code=status.HTTP_301_MOVED_PERMANENTLY)


async def upload_file(
    store: RevisionStore,
    reconciler: ReleaseReconciler,
    ref: PackageReference,
    filename: str,
    request: Request,
    declared: int,
    rrev: str,
    package_id: Optional[str] = None,
    prev: str = LATEST,
) -> Response:
    """
    Create the revision if needed, stream the request body up, record it, save.

    If the upload fails the store falls back to its saved state; a release
    created on the way stays and is found again by the next attempt.
    """
    async with store.transaction():
        revision, level = _resolve(store, ref, rrev, package_id, prev, Mode.CREATE)
        release = await run_in_threadpool(reconciler.get_release, ref, Mode.CREATE)
        asset = await run_in_threadpool(
            reconciler.put_file,
            release,
            level,
            filename,
            chunks_from_thread(request.stream()),
            declared,
        )
        store.record_asset(revision, filename, asset)
        await run_in_threadpool(store.save)
    return Response(status_code=status.HTTP_201_CREATED)


async def delete_nodes(
    store: RevisionStore,
    reconciler: ReleaseReconciler,
    ref: PackageReference,
    select: Callable[[RevisionStore], List[PendingDeletion]],
) -> Response:
    """
    Delete remote assets first, then splice the local nodes and save.

    `select` resolves the nodes (in `Mode.READ_WRITE`) inside the transaction.
    """
    async with store.transaction():
        deletions = select(store)
        assets = [asset for deletion in deletions for asset in deletion.assets]
        await run_in_threadpool(reconciler.delete_assets, ref, assets)
        for deletion in deletions:
            deletion.apply()
        await run_in_threadpool(store.save)
    return Response(status_code=status.HTTP_200_OK)
