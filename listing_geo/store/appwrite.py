"""Appwrite document store over the REST API."""

from __future__ import annotations

import json
from typing import Any, Iterator

from listing_geo.common.errors import ConfigError, RemoteFetchError, RemoteWriteError
from listing_geo.common.http import HttpClient, HttpRequestError
from listing_geo.store.documents import Document

MAX_PAGES = 10_000


def _query(method: str, *values: Any) -> str:
    return json.dumps({"method": method, "values": list(values)}, separators=(",", ":"))


class AppwriteDocumentStore:
    def __init__(
        self,
        http_client: HttpClient,
        *,
        endpoint: str,
        project_id: str,
        database_id: str,
        api_key: str | None,
        page_size: int = 100,
    ) -> None:
        if not api_key:
            raise ConfigError("Appwrite API key missing (set APPWRITE_API_KEY)")
        self.http_client = http_client
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.database_id = database_id
        self.api_key = api_key
        self.page_size = page_size

    @classmethod
    def from_config(cls, http_client: HttpClient, appwrite_cfg: dict) -> "AppwriteDocumentStore":
        return cls(
            http_client,
            endpoint=appwrite_cfg["endpoint"],
            project_id=appwrite_cfg["project_id"],
            database_id=appwrite_cfg["database_id"],
            api_key=appwrite_cfg.get("api_key"),
            page_size=int(appwrite_cfg.get("page_size", 100)),
        )

    def _headers(self) -> dict[str, str]:
        return {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Key": self.api_key,
        }

    def _documents_url(self, collection_id: str) -> str:
        return f"{self.endpoint}/databases/{self.database_id}/collections/{collection_id}/documents"

    def iter_pages(self, collection_id: str) -> Iterator[list[Document]]:
        cursor: str | None = None
        for _ in range(MAX_PAGES):
            params = [("queries[]", _query("limit", self.page_size))]
            if cursor is not None:
                params.append(("queries[]", _query("cursorAfter", cursor)))
            try:
                payload = self.http_client.get_json(
                    self._documents_url(collection_id),
                    source_type="appwrite",
                    params=params,
                    headers=self._headers(),
                )
            except HttpRequestError as exc:
                raise RemoteFetchError(f"Listing {collection_id} failed: {exc}") from exc

            documents = payload.get("documents") or []
            if documents:
                yield documents
            if len(documents) < self.page_size:
                return
            cursor = documents[-1]["$id"]
        raise RemoteFetchError(f"Listing {collection_id} exceeded {MAX_PAGES} pages")

    def list_documents(self, collection_id: str) -> list[Document]:
        out: list[Document] = []
        for page in self.iter_pages(collection_id):
            out.extend(page)
        return out

    def update_document(self, collection_id: str, document_id: str, data: dict[str, Any]) -> Document:
        try:
            return self.http_client.patch_json(
                f"{self._documents_url(collection_id)}/{document_id}",
                source_type="appwrite",
                json_body={"data": data},
                headers=self._headers(),
            )
        except HttpRequestError as exc:
            raise RemoteWriteError(f"Updating {collection_id}/{document_id} failed: {exc}") from exc
