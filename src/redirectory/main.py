from textwrap import dedent
import logging
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute

from redirectory.config.settings import Settings
from redirectory.database.local import DocumentStore
from redirectory.dependencies import ClientFactory
from redirectory.errors import (
    RedirectoryError,
    handle_broad_exceptions,
    handle_pydantic_validation_errors,
    handle_redirectory_errors,
)
from redirectory.releases.github import GitHubClient
from redirectory.revisions.store import RevisionStore
from redirectory.routers.conans_v1 import router as conans_v1_router
from redirectory.routers.conans_v2 import router as conans_v2_router
from redirectory.routers.files import router as files_router
from redirectory.routers.users import router as users_router
from redirectory.tokens import CapabilityTokenIssuer

# Set up logging
logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    release_client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """
    Create a FastAPI application.

    `release_client_factory` builds the release store client for a caller's
    GitHub token; it defaults to the real GitHub client.
    """
    settings = settings or Settings()
    configure_logging(settings)

    app = FastAPI(
        title="Redirectory",
        summary="Conan remote that keeps package files in GitHub releases",
        version="v1",
        description=dedent(
            """\
        Metadata lives on this server; files live as assets of the GitHub
        release `{owner}/{repo}@{tag}` for a reference `repo/tag@github/owner`.

        | Helpful Links | Notes |
        | --- | --- |
        | [Conan REST API](https://docs.conan.io/) | v1 and v2 (revisions) |
        | [GitHub releases API](https://docs.github.com/en/rest/releases) | file storage |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.state.settings = settings
    logger.info(f"Loading revision store from {settings.store_path}")
    app.state.store = RevisionStore(DocumentStore(settings.store_path))
    app.state.store.load()
    app.state.issuer = CapabilityTokenIssuer(settings.signing_key, settings.upload_url_ttl_minutes)
    app.state.release_client_factory = release_client_factory or (
        lambda token: GitHubClient(token, settings)
    )

    app.include_router(users_router, tags=["users"])
    app.include_router(conans_v2_router, tags=["conans-v2"])
    app.include_router(conans_v1_router, tags=["conans-v1"])
    app.include_router(files_router, tags=["files"])

    app.add_exception_handler(
        exc_class_or_status_code=RedirectoryError,
        handler=handle_redirectory_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
