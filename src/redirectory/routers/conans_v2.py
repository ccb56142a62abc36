"""Conan v2 (revisions) API."""
import logging

from fastapi import APIRouter, Depends, Request

from redirectory.dependencies import get_reconciler, get_reference, get_store
from redirectory.releases.reconciler import ReleaseReconciler
from redirectory.revisions.models import LATEST, Mode, PackageReference
from redirectory.revisions.store import RevisionStore
from redirectory.routers.common import (
    declared_length,
    delete_nodes,
    list_remote_assets,
    redirect_to_file,
    resolve_level,
    upload_file,
)
from redirectory.schemas import (
    FilesResponse,
    PackageRevisionsResponse,
    RecipeRevisionsResponse,
    RevisionInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RECIPE = "/v2/conans/{name}/{version}/{user}/{channel}"
RREV = RECIPE + "/revisions/{rrev}"
PACKAGE = RREV + "/packages/{package_id}"
PREV = PACKAGE + "/revisions/{prev}"


def _info(revision) -> RevisionInfo:
    return RevisionInfo(revision=revision.id, time=revision.time.isoformat())


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

@router.get(RECIPE + "/latest", response_model=RevisionInfo)
async def get_recipe_latest(
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    """Latest recipe revision."""
    async with store.reading():
        return _info(store.resolve_recipe_revision(ref, LATEST).value)


@router.get(RECIPE + "/revisions", response_model=RecipeRevisionsResponse)
async def get_recipe_revisions(
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    """Called during `conan remove`; newest first."""
    async with store.reading():
        recipe = store.resolve_recipe(ref).value
        revisions = store.list_revisions(recipe.revisions)
    return RecipeRevisionsResponse(reference=str(ref), revisions=revisions)


@router.delete(RECIPE)
async def delete_recipe(
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    return await delete_nodes(
        store, reconciler, ref,
        lambda s: [s.delete_recipe(s.resolve_recipe(ref, Mode.READ_WRITE))],
    )


# ---------------------------------------------------------------------------
# Recipe revisions
# ---------------------------------------------------------------------------

@router.delete(RREV)
async def delete_recipe_revision(
    rrev: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    return await delete_nodes(
        store, reconciler, ref,
        lambda s: [s.delete_recipe_revision(s.resolve_recipe_revision(ref, rrev, Mode.READ_WRITE))],
    )


@router.get(RREV + "/files", response_model=FilesResponse)
async def get_recipe_revision_files(
    rrev: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    """
    Called during `conan upload`.
    If it returns 404, then Conan uploads assets.
    If it returns 200, then the recipe revision exists.
    """
    level, _ = await resolve_level(store, ref, rrev)
    assets = await list_remote_assets(reconciler, level)
    return FilesResponse(files={filename: {} for filename in assets})


@router.get(RREV + "/files/{filename}")
async def get_recipe_revision_file(
    rrev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    """Redirect to the asset's permanent download URL."""
    return await redirect_to_file(store, ref, filename, rrev)


@router.put(RREV + "/files/{filename}")
async def put_recipe_revision_file(
    request: Request,
    rrev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    declared = declared_length(request)
    return await upload_file(store, reconciler, ref, filename, request, declared, rrev)


@router.delete(RREV + "/packages")
async def delete_recipe_revision_packages(
    rrev: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    return await delete_nodes(
        store, reconciler, ref,
        lambda s: [s.delete_packages(s.resolve_recipe_revision(ref, rrev, Mode.READ_WRITE))],
    )


# ---------------------------------------------------------------------------
# Packages and package revisions
# ---------------------------------------------------------------------------

@router.get(PACKAGE + "/latest", response_model=RevisionInfo)
async def get_package_latest(
    rrev: str,
    package_id: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    async with store.reading():
        return _info(store.resolve_package_revision(ref, rrev, package_id, LATEST).value)


@router.get(PACKAGE + "/revisions", response_model=PackageRevisionsResponse)
async def get_package_revisions(
    rrev: str,
    package_id: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    async with store.reading():
        package = store.resolve_package(ref, rrev, package_id).value
        revisions = store.list_revisions(package.revisions)
    return PackageRevisionsResponse(
        package_reference=f"{ref}#{rrev}:{package_id}", revisions=revisions
    )


@router.delete(PREV)
async def delete_package_revision(
    rrev: str,
    package_id: str,
    prev: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    return await delete_nodes(
        store, reconciler, ref,
        lambda s: [s.delete_package_revision(
            s.resolve_package_revision(ref, rrev, package_id, prev, Mode.READ_WRITE)
        )],
    )


@router.get(PREV + "/files", response_model=FilesResponse)
async def get_package_revision_files(
    rrev: str,
    package_id: str,
    prev: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    level, _ = await resolve_level(store, ref, rrev, package_id, prev)
    assets = await list_remote_assets(reconciler, level)
    return FilesResponse(files={filename: {} for filename in assets})


@router.get(PREV + "/files/{filename}")
async def get_package_revision_file(
    rrev: str,
    package_id: str,
    prev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    return await redirect_to_file(store, ref, filename, rrev, package_id, prev)


@router.put(PREV + "/files/{filename}")
async def put_package_revision_file(
    request: Request,
    rrev: str,
    package_id: str,
    prev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    declared = declared_length(request)
    return await upload_file(
        store, reconciler, ref, filename, request, declared, rrev, package_id, prev
    )
