"""Persistence for the Revision Store."""
from redirectory.database.local import DocumentStore

__all__ = ["DocumentStore"]
