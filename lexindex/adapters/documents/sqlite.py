import os
import sqlite3

from lexindex.adapters.documents.base import DocumentStore
from lexindex.core.errors import DocumentNotFoundError
from lexindex.core.models import Document, DocumentStatus


class SqliteDocumentStore(DocumentStore):
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self):
        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = self._connect()
        cur = conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS documents(
            doc_id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            source_locator TEXT NOT NULL,
            status TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        );
        """)
        conn.commit()
        conn.close()

    def save_document(self, doc: Document):
        conn = self._connect()
        cur = conn.cursor()
        cur.execute(
            "INSERT OR REPLACE INTO documents(doc_id, title, source_locator, status) VALUES(?,?,?,?)",
            (doc.doc_id, doc.title, doc.source_locator, doc.status.value),
        )
        conn.commit()
        conn.close()

    def get_document(self, doc_id: str) -> Document | None:
        conn = self._connect()
        cur = conn.cursor()
        cur.execute("SELECT doc_id, title, source_locator, status FROM documents WHERE doc_id=?", (doc_id,))
        row = cur.fetchone()
        conn.close()
        if not row:
            return None
        return Document(doc_id=row[0], title=row[1], source_locator=row[2], status=DocumentStatus(row[3]))

    def update_status(self, doc_id: str, status: DocumentStatus) -> None:
        conn = self._connect()
        cur = conn.cursor()
        cur.execute(
            "UPDATE documents SET status=?, updated_at=CURRENT_TIMESTAMP WHERE doc_id=?",
            (DocumentStatus(status).value, doc_id),
        )
        updated = cur.rowcount
        conn.commit()
        conn.close()
        if not updated:
            raise DocumentNotFoundError(doc_id)

    def get_source_locator(self, doc_id: str) -> str:
        doc = self.get_document(doc_id)
        if doc is None:
            raise DocumentNotFoundError(doc_id)
        return doc.source_locator

    def delete_document(self, doc_id: str) -> None:
        conn = self._connect()
        cur = conn.cursor()
        cur.execute("DELETE FROM documents WHERE doc_id=?", (doc_id,))
        conn.commit()
        conn.close()
