"""Revision Store: the recipe -> revision -> package -> revision -> file graph."""
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
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
)
from redirectory.revisions.store import PendingDeletion, RevisionStore

__all__ = [
    "LATEST",
    "Asset",
    "Cursor",
    "Mode",
    "Package",
    "PackageReference",
    "PackageRevision",
    "PackageRevisionLevel",
    "PendingDeletion",
    "Recipe",
    "RecipeRevision",
    "RecipeRevisionLevel",
    "RevisionStore",
    "latest_revision",
]
