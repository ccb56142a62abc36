"""
sqlite document store for the Revision Store.

Each recipe is kept as one JSON document keyed by its reference string.
The whole collection is replaced inside a single transaction, so a crash
leaves either the previous or the new store on disk, never a mix.
"""

import sqlite3
import json
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


class DocumentStore:
    """Whole-collection load/save of recipe documents."""

    def __init__(self, db_path: str = "redirectory.db"):
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_collections(self) -> None:
        """Create the recipes collection if it does not exist yet."""
        conn = self._get_connection()
        try:
            with conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS recipes (
                        reference TEXT PRIMARY KEY,
                        document TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                ''')
            logger.info(f"Document store initialized at {self.db_path}")
        finally:
            conn.close()

    def load_documents(self) -> Dict[str, Dict[str, Any]]:
        """Read every recipe document, in insertion order."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                'SELECT reference, document FROM recipes ORDER BY rowid'
            ).fetchall()
            return {row["reference"]: json.loads(row["document"]) for row in rows}
        finally:
            conn.close()

    def replace_documents(self, documents: Dict[str, Dict[str, Any]]) -> None:
        """Atomically replace the whole collection with `documents`."""
        conn = self._get_connection()
        try:
            # The connection context manager commits on success and rolls back on error.
            with conn:
                conn.execute('DELETE FROM recipes')
                conn.executemany(
                    'INSERT INTO recipes (reference, document) VALUES (?, ?)',
                    [
                        (reference, json.dumps(document, separators=(",", ":")))
                        for reference, document in documents.items()
                    ],
                )
            logger.debug(f"Saved {len(documents)} recipe documents to {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Error saving recipe documents: {str(e)}")
            raise
        finally:
            conn.close()
