"""
Conan v1 API, for clients that do not know about revisions.

Reads go to the latest revisions. Uploads go through signed `/v1/files` URLs
and always land in revision "0".
"""
import logging
from typing import Dict
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, Request

from redirectory.config.settings import Settings
from redirectory.credentials import Credentials
from redirectory.dependencies import (
    get_app_settings,
    get_credentials,
    get_issuer,
    get_reconciler,
    get_reference,
    get_store,
)
from redirectory.releases.reconciler import ReleaseReconciler
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
from redirectory.revisions.models import LATEST, Mode, PackageReference
from redirectory.revisions.store import RevisionStore
from redirectory.routers.common import delete_nodes, file_sums, list_remote_assets, resolve_level
from redirectory.schemas import DeletePackagesRequest
from redirectory.tokens import CapabilityTokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter()

RECIPE = "/v1/conans/{name}/{version}/{user}/{channel}"
PACKAGE = RECIPE + "/packages/{package_id}"

V1_REVISION = "0"


def signed_urls(
    request: Request,
    settings: Settings,
    issuer: CapabilityTokenIssuer,
    credentials: Credentials,
    resource_dir: str,
    sizes: Dict[str, int],
) -> Dict[str, str]:
    """One signed `/v1/files` upload URL per file, bound to its path, the user and its size."""
    base = settings.public_base_url or str(request.base_url).rstrip("/")
    exp = issuer.expiry()
    urls = {}
    for filename, filesize in sizes.items():
        resource_path = f"{resource_dir}/{filename}"
        query = urlencode({
            "signature": issuer.issue(resource_path, credentials.user, filesize, exp),
            "user": credentials.user,
            "auth": credentials.auth,
        })
        urls[filename] = f"{base}/v1/files/{resource_path}?{query}"
    return urls


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------

@router.get(RECIPE)
async def get_recipe_files(
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
) -> Dict[str, str]:
    """Called during `conan install`; filename to md5 of the latest recipe revision."""
    level, cached = await resolve_level(store, ref)
    remote = await list_remote_assets(reconciler, level)
    return file_sums(remote, cached)


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


@router.get(RECIPE + "/download_urls")
async def get_recipe_download_urls(
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
) -> Dict[str, str]:
    level, _ = await resolve_level(store, ref)
    remote = await list_remote_assets(reconciler, level)
    return {filename: asset.url for filename, asset in remote.items()}


@router.post(RECIPE + "/upload_urls")
async def get_recipe_upload_urls(
    request: Request,
    sizes: Dict[str, int] = Body(...),
    ref: PackageReference = Depends(get_reference),
    settings: Settings = Depends(get_app_settings),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
    credentials: Credentials = Depends(get_credentials),
) -> Dict[str, str]:
    """Called during `conan upload`; body is filename to size in bytes."""
    level = RecipeRevisionLevel(ref, V1_REVISION)
    return signed_urls(request, settings, issuer, credentials, level.resource_path, sizes)


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------

@router.post(RECIPE + "/packages/delete")
async def delete_packages(
    request_body: DeletePackagesRequest,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
):
    """Delete the listed packages of the latest recipe revision, or all of them."""
    package_ids = list(dict.fromkeys(request_body.package_ids))

    def select(s: RevisionStore):
        rrev = s.resolve_recipe_revision(ref, LATEST, Mode.READ_WRITE)
        if not package_ids:
            return [s.delete_packages(rrev)]
        return [s.delete_package(s.find_package(rrev, package_id, Mode.READ_WRITE)) for package_id in package_ids]

    return await delete_nodes(store, reconciler, ref, select)


@router.get(PACKAGE)
async def get_package_files(
    package_id: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
) -> Dict[str, str]:
    level, cached = await resolve_level(store, ref, LATEST, package_id, LATEST)
    remote = await list_remote_assets(reconciler, level)
    return file_sums(remote, cached)


@router.get(PACKAGE + "/download_urls")
async def get_package_download_urls(
    package_id: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    reconciler: ReleaseReconciler = Depends(get_reconciler),
) -> Dict[str, str]:
    level, _ = await resolve_level(store, ref, LATEST, package_id, LATEST)
    remote = await list_remote_assets(reconciler, level)
    return {filename: asset.url for filename, asset in remote.items()}


@router.post(PACKAGE + "/upload_urls")
async def get_package_upload_urls(
    request: Request,
    package_id: str,
    sizes: Dict[str, int] = Body(...),
    ref: PackageReference = Depends(get_reference),
    settings: Settings = Depends(get_app_settings),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
    credentials: Credentials = Depends(get_credentials),
) -> Dict[str, str]:
    level = PackageRevisionLevel(ref, V1_REVISION, package_id, V1_REVISION)
    return signed_urls(request, settings, issuer, credentials, level.resource_path, sizes)
