# cli.py
import logging

import click

from redirectory.config.settings import get_settings
from redirectory.database.local import DocumentStore
from redirectory.revisions.store import RevisionStore

# Configure logging
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """CLI commands for the Redirectory server"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Store Path: {settings.store_path}")
    print(f"  Log Level: {settings.log_level}")
    print(f"  GitHub API: {settings.github_api_url}")
    print(f"  Supported Host: {settings.supported_host}")
    print(f"  Upload URL TTL: {settings.upload_url_ttl_minutes} minutes")
    print(f"  Public Base URL: {settings.public_base_url or '(request base URL)'}")


@cli.command()
def list_recipes():
    """List stored recipes and their revisions, newest first"""
    settings = get_settings()
    store = RevisionStore(DocumentStore(settings.store_path))
    store.load()
    if not store.recipes:
        print("No recipes stored")
        return
    for reference, recipe in sorted(store.recipes.items()):
        print(reference)
        for entry in store.list_revisions(recipe.revisions):
            print(f"  #{entry['revision']}  {entry['time']}")


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind")
@click.option("--port", default=8000, type=int, help="Port to listen on")
def serve(host, port):
    """Run the API with uvicorn"""
    import uvicorn

    from redirectory.main import create_app

    uvicorn.run(create_app(get_settings()), host=host, port=port)


if __name__ == "__main__":
    cli()
