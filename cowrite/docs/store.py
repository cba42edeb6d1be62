from __future__ import annotations

"""
Durable key-value record store for documents.

One JSON file per document under ``root``. Each record has its own lock so a
read-modify-write (partial merge, role-map update) is a single atomic step
against the file, while unrelated documents proceed in parallel.
"""

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import NotFound
from .models import Document, utc_timestamp
from .roles import RoleMap

LOGGER = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
PATCHABLE_FIELDS: Tuple[str, ...] = ("title", "content")


class DocumentStore:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _path(self, doc_id: str) -> Path:
        if not _ID_PATTERN.match(doc_id or ""):
            raise NotFound()
        return self.root / f"{doc_id}.json"

    def _lock(self, doc_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(doc_id, threading.Lock())

    def _read(self, doc_id: str) -> Document:
        path = self._path(doc_id)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise NotFound() from None
        except ValueError:
            LOGGER.warning("Unreadable document record %s", path)
            raise NotFound() from None
        raw.setdefault("id", doc_id)
        return Document.from_record(raw)

    def _write(self, document: Document) -> None:
        path = self._path(document.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(document.to_record(), indent=2), encoding="utf-8")
        os.replace(tmp, path)

    # Reads --------------------------------------------------------------------
    def load(self, doc_id: str) -> Document:
        with self._lock(doc_id):
            return self._read(doc_id)

    def list_ids(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))

    def list_for_member(self, user_id: str) -> List[Document]:
        documents: List[Document] = []
        for doc_id in self.list_ids():
            try:
                document = self.load(doc_id)
            except NotFound:
                continue
            if user_id in document.roles:
                documents.append(document)
        documents.sort(key=lambda doc: doc.updated_at, reverse=True)
        return documents

    # Writes -------------------------------------------------------------------
    def create(self, document: Document) -> Document:
        with self._lock(document.id):
            if self._path(document.id).exists():
                raise ValueError(f"document_exists: {document.id}")
            self._write(document)
        LOGGER.debug("Created document %s", document.id)
        return document

    def patch(self, doc_id: str, fields: Mapping[str, Any]) -> Document:
        """Merge the given title/content fields and touch ``updated_at``."""
        with self._lock(doc_id):
            document = self._read(doc_id)
            changed = False
            for name in PATCHABLE_FIELDS:
                if name in fields:
                    setattr(document, name, fields[name])
                    changed = True
            if changed:
                document.updated_at = utc_timestamp()
                self._write(document)
            return document

    def update_roles(
        self, doc_id: str, planner: Callable[[RoleMap], RoleMap]
    ) -> Tuple[Document, bool]:
        """
        Apply ``planner`` to a snapshot of the role map under the record lock.

        The planner may raise to abort; nothing is written in that case.
        Returns the resulting document and whether the role map changed.
        """
        with self._lock(doc_id):
            document = self._read(doc_id)
            planned = planner(dict(document.roles))
            if planned == document.roles:
                return document, False
            document.roles = dict(planned)
            self._write(document)
            return document, True

    def delete(
        self, doc_id: str, guard: Optional[Callable[[Document], None]] = None
    ) -> Document:
        """
        Remove a record, returning its last state.

        ``guard`` sees the current record under the same lock as the unlink and
        may raise to abort.
        """
        with self._lock(doc_id):
            document = self._read(doc_id)
            if guard is not None:
                guard(document)
            try:
                self._path(doc_id).unlink()
            except FileNotFoundError:
                raise NotFound() from None
        with self._guard:
            self._locks.pop(doc_id, None)
        return document


__all__ = ["DocumentStore", "PATCHABLE_FIELDS"]
