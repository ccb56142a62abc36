import logging

from fastapi import APIRouter, Path, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from redirectory.credentials import parse_basic, parse_bearer
from redirectory.dependencies import make_reconciler

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = Path(..., pattern="^v[12]$", description="Conan REST API version")

SERVER_CAPABILITIES = "complex_search,revisions"


@router.get("/{api}/ping")
async def ping(api: str = API_VERSION):
    """Advertise the capabilities of this server."""
    return Response(headers={"X-Conan-Server-Capabilities": SERVER_CAPABILITIES})


@router.get("/{api}/users/authenticate", response_class=PlainTextResponse)
async def authenticate(request: Request, api: str = API_VERSION):
    """
    Called during `conan user`.

    Return the Basic token right back to the client. It passes whatever is
    returned as the Bearer token on later requests, so the bearer token is
    base64("user:github token").
    """
    return parse_basic(request.headers.get("Authorization"))


@router.get("/{api}/users/check_credentials", response_class=PlainTextResponse)
async def check_credentials(request: Request, api: str = API_VERSION):
    """Called during `conan upload`; confirms the GitHub token works."""
    credentials = parse_bearer(request.headers.get("Authorization"))
    client_id = request.headers.get("X-Client-Id")
    if client_id is not None and client_id != credentials.user:
        logger.warning(f"Bearer token ({credentials.user}) does not match X-Client-Id ({client_id})")
    reconciler = make_reconciler(request, credentials.auth)
    login = await run_in_threadpool(reconciler.client.get_authenticated_user)
    if login != credentials.user:
        logger.warning(f"Bearer token ({credentials.user}) does not match GitHub token ({login})")
    return credentials.user


@router.get("/{api}/conans/search")
async def search(api: str = API_VERSION):
    """Package search is not offered."""
    return Response(status_code=status.HTTP_501_NOT_IMPLEMENTED)


@router.get("/{api}/conans/{name}/{version}/{user}/{channel}/search")
async def search_recipe(name: str, version: str, user: str, channel: str, api: str = API_VERSION):
    """Binary search within a recipe is not offered."""
    return Response(status_code=status.HTTP_501_NOT_IMPLEMENTED)
