"""Document store boundary and the in-memory implementation."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Iterator, Protocol

from listing_geo.common.errors import RemoteFetchError, RemoteWriteError
from listing_geo.common.fs import read_json, write_json

Document = dict[str, Any]


class DocumentStore(Protocol):
    def list_documents(self, collection_id: str) -> list[Document]: ...

    def update_document(self, collection_id: str, document_id: str, data: dict[str, Any]) -> Document: ...


class InMemoryDocumentStore:
    """Dict-backed store paging like the remote one.

    Snapshots are JSON objects mapping collection ids to lists of documents.
    """

    def __init__(self, collections: dict[str, list[Document]] | None = None, *, page_size: int = 25) -> None:
        self.page_size = page_size
        self.collections: dict[str, dict[str, Document]] = {}
        self.pages_read = 0
        for collection_id, documents in (collections or {}).items():
            self.collections[collection_id] = {str(doc["$id"]): copy.deepcopy(doc) for doc in documents}

    @classmethod
    def from_snapshot(cls, path: Path, *, page_size: int = 25) -> "InMemoryDocumentStore":
        payload = read_json(path)
        if not isinstance(payload, dict):
            raise RemoteFetchError(f"Snapshot must map collection ids to documents: {path}")
        return cls(payload, page_size=page_size)

    def save_snapshot(self, path: Path) -> None:
        write_json(path, {name: list(docs.values()) for name, docs in self.collections.items()})

    def _collection(self, collection_id: str) -> dict[str, Document]:
        try:
            return self.collections[collection_id]
        except KeyError as exc:
            raise RemoteFetchError(f"Collection not found: {collection_id}") from exc

    def iter_pages(self, collection_id: str) -> Iterator[list[Document]]:
        documents = list(self._collection(collection_id).values())
        for start in range(0, len(documents), self.page_size):
            self.pages_read += 1
            yield [copy.deepcopy(doc) for doc in documents[start : start + self.page_size]]

    def list_documents(self, collection_id: str) -> list[Document]:
        out: list[Document] = []
        for page in self.iter_pages(collection_id):
            out.extend(page)
        return out

    def update_document(self, collection_id: str, document_id: str, data: dict[str, Any]) -> Document:
        documents = self.collections.get(collection_id)
        if documents is None or document_id not in documents:
            raise RemoteWriteError(f"Document not found: {collection_id}/{document_id}")
        documents[document_id].update(copy.deepcopy(data))
        return copy.deepcopy(documents[document_id])
