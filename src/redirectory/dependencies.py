"""FastAPI dependencies: settings, the store, credentials and the release store client."""
from typing import Callable

from fastapi import Depends, Request

from redirectory.config.settings import Settings
from redirectory.credentials import Credentials, parse_bearer
from redirectory.errors import UnsupportedBackendError
from redirectory.releases.reconciler import ReleaseReconciler, ReleaseStoreClient
from redirectory.revisions.models import PackageReference
from redirectory.revisions.store import RevisionStore
from redirectory.tokens import CapabilityTokenIssuer

ClientFactory = Callable[[str], ReleaseStoreClient]


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RevisionStore:
    return request.app.state.store


def get_issuer(request: Request) -> CapabilityTokenIssuer:
    return request.app.state.issuer


def get_reference(
    name: str,
    version: str,
    user: str,
    channel: str,
    settings: Settings = Depends(get_app_settings),
) -> PackageReference:
    """Build the reference from the path; only the supported host is served."""
    ref = PackageReference(name=name, version=version, user=user, channel=channel)
    if ref.host != settings.supported_host:
        raise UnsupportedBackendError(f"Not a GitHub package: '{ref}'")
    return ref


def get_credentials(request: Request) -> Credentials:
    return parse_bearer(request.headers.get("Authorization"))


def make_reconciler(request: Request, token: str) -> ReleaseReconciler:
    """A reconciler whose release store calls act with `token`."""
    factory: ClientFactory = request.app.state.release_client_factory
    return ReleaseReconciler(factory(token), request.app.state.settings)


def get_reconciler(
    request: Request, credentials: Credentials = Depends(get_credentials)
) -> ReleaseReconciler:
    return make_reconciler(request, credentials.auth)
