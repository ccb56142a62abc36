"""
The Revision Store: recipes, recipe revisions, packages and package revisions.

Every resolve call takes a `Mode`. `READ_ONLY` and `READ_WRITE` fail with
`NotFoundError` when the node does not exist; `CREATE` appends it instead.
Resolve calls return a `Cursor` so deletions can splice by position.

Mutations only touch memory. Callers commit them with `save()`, normally
inside `transaction()`, which serialises writers and throws away unsaved
changes when the body raises.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List

from fastapi.concurrency import run_in_threadpool

from redirectory.database.local import DocumentStore
from redirectory.errors import EmptyError, NotFoundError
from redirectory.revisions.models import (
    LATEST,
    Asset,
    Cursor,
    Mode,
    Package,
    PackageReference,
    PackageRevision,
    Recipe,
    RecipeRevision,
    latest_revision,
    now,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingDeletion:
    """
    Assets that must be deleted remotely before a local splice is applied.

    `apply()` performs the splice in memory; the caller still has to `save()`.
    """
    assets: List[Asset]
    _splice: Callable[[], None] = field(repr=False)

    def apply(self) -> None:
        self._splice()


def _revision_assets(revision: RecipeRevision) -> List[Asset]:
    assets = list(revision.assets.values())
    for package in revision.packages.values():
        assets.extend(_package_assets(package))
    return assets


def _package_assets(package: Package) -> List[Asset]:
    return [asset for prev in package.revisions for asset in prev.assets.values()]


class RevisionStore:
    """In-memory revision graph persisted as a whole to a `DocumentStore`."""

    def __init__(self, documents: DocumentStore, clock: Callable[[], datetime] = now):
        self.documents = documents
        self.clock = clock
        self.recipes: Dict[str, Recipe] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Replace the in-memory graph with the last saved state."""
        self.documents.init_collections()
        self.recipes = {
            reference: Recipe.model_validate(document)
            for reference, document in self.documents.load_documents().items()
        }
        logger.info(f"Loaded {len(self.recipes)} recipes from {self.documents.db_path}")

    def save(self) -> None:
        """Atomically persist the whole graph."""
        self.documents.replace_documents(
            {reference: recipe.model_dump(mode="json") for reference, recipe in self.recipes.items()}
        )

    @asynccontextmanager
    async def transaction(self):
        """Hold the writer lock; on error, fall back to the last saved state."""
        async with self._lock:
            try:
                yield self
            except BaseException:
                logger.warning("Discarding unsaved revision store changes")
                await run_in_threadpool(self.load)
                raise

    @asynccontextmanager
    async def reading(self):
        """Hold the writer lock so a reader never sees a half-done upload."""
        async with self._lock:
            yield self

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_revision(self, revisions, revision_id: str, mode: Mode, factory, what: str) -> Cursor:
        if revision_id == LATEST:
            if revisions:
                return latest_revision(revisions)
            if mode is not Mode.CREATE:
                raise EmptyError(f"No revisions of {what}")
            revision_id = str(len(revisions))
        else:
            for index, revision in enumerate(revisions):
                if revision.id == revision_id:
                    return Cursor(revision, revisions, index)
            if mode is not Mode.CREATE:
                raise NotFoundError(f"Revision not found: {what}#{revision_id}")
        revisions.append(factory(id=revision_id, time=self.clock()))
        logger.info(f"Created revision {what}#{revision_id}")
        return Cursor(revisions[-1], revisions, len(revisions) - 1)

    def resolve_recipe(self, ref: PackageReference, mode: Mode = Mode.READ_ONLY) -> Cursor[Recipe]:
        key = str(ref)
        recipe = self.recipes.get(key)
        if recipe is None or not recipe.revisions:
            if mode is not Mode.CREATE:
                raise NotFoundError(f"Recipe not found: '{ref}'")
            if recipe is None:
                recipe = self.recipes[key] = Recipe(reference=key)
        return Cursor(recipe, self.recipes, key)

    def resolve_recipe_revision(
        self, ref: PackageReference, rrev: str = LATEST, mode: Mode = Mode.READ_ONLY
    ) -> Cursor[RecipeRevision]:
        recipe = self.resolve_recipe(ref, mode).value
        return self._resolve_revision(recipe.revisions, rrev, mode, RecipeRevision, str(ref))

    def find_package(
        self, rrev: Cursor[RecipeRevision], package_id: str, mode: Mode = Mode.READ_ONLY
    ) -> Cursor[Package]:
        packages = rrev.value.packages
        package = packages.get(package_id)
        if package is None or not package.revisions:
            if mode is not Mode.CREATE:
                raise NotFoundError(f"Package not found: {rrev.value.id}:{package_id}")
            if package is None:
                package = packages[package_id] = Package(id=package_id)
        return Cursor(package, packages, package_id)

    def resolve_package(
        self, ref: PackageReference, rrev: str, package_id: str, mode: Mode = Mode.READ_ONLY
    ) -> Cursor[Package]:
        return self.find_package(self.resolve_recipe_revision(ref, rrev, mode), package_id, mode)

    def resolve_package_revision(
        self,
        ref: PackageReference,
        rrev: str,
        package_id: str,
        prev: str = LATEST,
        mode: Mode = Mode.READ_ONLY,
    ) -> Cursor[PackageRevision]:
        package = self.resolve_package(ref, rrev, package_id, mode).value
        return self._resolve_revision(
            package.revisions, prev, mode, PackageRevision, f"{ref}#{rrev}:{package_id}"
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    @staticmethod
    def record_asset(revision, filename: str, asset: Asset) -> None:
        """Cache an uploaded asset on its recipe or package revision."""
        revision.assets[filename] = asset

    def delete_recipe(self, recipe: Cursor[Recipe]) -> PendingDeletion:
        assets = [asset for rrev in recipe.value.revisions for asset in _revision_assets(rrev)]
        return PendingDeletion(assets, recipe.remove)

    def delete_recipe_revision(self, rrev: Cursor[RecipeRevision]) -> PendingDeletion:
        return PendingDeletion(_revision_assets(rrev.value), rrev.remove)

    def delete_packages(self, rrev: Cursor[RecipeRevision]) -> PendingDeletion:
        packages = rrev.value.packages
        assets = [asset for package in packages.values() for asset in _package_assets(package)]
        return PendingDeletion(assets, packages.clear)

    def delete_package(self, package: Cursor[Package]) -> PendingDeletion:
        return PendingDeletion(_package_assets(package.value), package.remove)

    def delete_package_revision(self, prev: Cursor[PackageRevision]) -> PendingDeletion:
        return PendingDeletion(list(prev.value.assets.values()), prev.remove)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    @staticmethod
    def list_revisions(revisions) -> List[dict]:
        """`{revision, time}` entries, newest first."""
        ordered = sorted(enumerate(revisions), key=lambda item: (item[1].time, -item[0]), reverse=True)
        return [{"revision": r.id, "time": r.time.isoformat()} for _, r in ordered]
