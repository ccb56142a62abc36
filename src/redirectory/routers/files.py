"""
Signed v1 file transfer.

`upload_urls` hands out these URLs. The query carries the capability token
(`signature`), the Conan user it was issued to (`user`) and the GitHub token
the upload acts with (`auth`). The path segment `user` is the reference's
host, so the query values are read from the request directly.
"""
import logging

from fastapi import APIRouter, Depends, Request

from redirectory.dependencies import get_issuer, get_reference, get_store, make_reconciler
from redirectory.errors import BadRequestError
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
from redirectory.revisions.models import LATEST, PackageReference
from redirectory.revisions.store import RevisionStore
from redirectory.routers.common import declared_length, redirect_to_file, upload_file
from redirectory.tokens import CapabilityTokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter()

RECIPE = "/v1/files/{name}/{version}/{user}/{channel}/{rrev}"
EXPORT_FILE = RECIPE + "/export/{filename}"
PACKAGE_FILE = RECIPE + "/package/{package_id}/{prev}/{filename}"


def _query_param(request: Request, name: str) -> str:
    value = request.query_params.get(name)
    if not value:
        raise BadRequestError(f"Missing query parameter: {name}")
    return value


async def _signed_upload(request, store, issuer, level, filename, package_id=None, prev=LATEST):
    declared = declared_length(request)
    issuer.verify(
        _query_param(request, "signature"),
        f"{level.resource_path}/{filename}",
        _query_param(request, "user"),
        declared,
    )
    reconciler = make_reconciler(request, _query_param(request, "auth"))
    return await upload_file(
        store, reconciler, level.reference, filename, request, declared, level.rrev, package_id, prev
    )


@router.put(EXPORT_FILE)
async def put_export_file(
    request: Request,
    rrev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
):
    level = RecipeRevisionLevel(ref, rrev)
    return await _signed_upload(request, store, issuer, level, filename)


@router.get(EXPORT_FILE)
async def get_export_file(
    rrev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    return await redirect_to_file(store, ref, filename, rrev)


@router.put(PACKAGE_FILE)
async def put_package_file(
    request: Request,
    rrev: str,
    package_id: str,
    prev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
):
    level = PackageRevisionLevel(ref, rrev, package_id, prev)
    return await _signed_upload(request, store, issuer, level, filename, package_id, prev)


@router.get(PACKAGE_FILE)
async def get_package_file(
    rrev: str,
    package_id: str,
    prev: str,
    filename: str,
    ref: PackageReference = Depends(get_reference),
    store: RevisionStore = Depends(get_store),
):
    return await redirect_to_file(store, ref, filename, rrev, package_id, prev)
