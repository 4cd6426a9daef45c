from __future__ import annotations

import json
import logging

import requests

from .vocab import RecordId, VocabularyRecord, deserialize_records

__all__ = [
    "ReaderClient",
    "ReaderClientError",
    "ReaderUnavailableError",
]

logger = logging.getLogger(__name__)


class ReaderClientError(RuntimeError):
    """Raised when the reader server returns an unexpected response."""


class ReaderUnavailableError(ConnectionError):
    """Raised when the reader server is unreachable."""


class ReaderClient:
    """
    Thin wrapper around a running yomu server's document and vocabulary API.
    """

    def __init__(self, base_url: str = "http://127.0.0.1:3000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ReaderUnavailableError(f"Failed to contact reader server at {self.base_url}") from exc

    def _json(self, resp: requests.Response, label: str) -> object:
        try:
            return resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ReaderClientError(f"Reader server returned invalid JSON for {label}") from exc

    def list_vocabulary(self) -> list[VocabularyRecord]:
        resp = self._request("GET", "/api/vocab")
        if resp.status_code != 200:
            raise ReaderClientError(f"/api/vocab failed with status {resp.status_code}: {resp.text}")
        payload = self._json(resp, "/api/vocab")
        if not isinstance(payload, list):
            raise ReaderClientError("/api/vocab did not return a list")
        return deserialize_records(payload)

    def fetch_content(self, book_id: RecordId) -> str:
        resp = self._request("GET", f"/api/books/{book_id}/content")
        if resp.status_code != 200:
            raise ReaderClientError(
                f"/api/books/{book_id}/content failed with status {resp.status_code}"
            )
        resp.encoding = resp.encoding or "utf-8"
        return resp.text

    def list_books(self, sort: str | None = None) -> list[dict[str, object]]:
        params = {"sort": sort} if sort else None
        resp = self._request("GET", "/api/books", params=params)
        if resp.status_code != 200:
            raise ReaderClientError(f"/api/books failed with status {resp.status_code}")
        payload = self._json(resp, "/api/books")
        if not isinstance(payload, list):
            raise ReaderClientError("/api/books did not return a list")
        return [entry for entry in payload if isinstance(entry, dict)]

    def save_vocabulary(
        self,
        original: str,
        translation: str,
        context: str,
        book_id: RecordId,
    ) -> RecordId:
        resp = self._request(
            "POST",
            "/api/vocab",
            json={
                "original": original,
                "translation": translation,
                "context": context,
                "bookId": book_id,
            },
        )
        if not 200 <= resp.status_code < 300:
            raise ReaderClientError(f"/api/vocab save failed with status {resp.status_code}: {resp.text}")
        payload = self._json(resp, "/api/vocab")
        record_id = payload.get("id") if isinstance(payload, dict) else None
        if not isinstance(record_id, (int, str)):
            raise ReaderClientError("/api/vocab save response is missing 'id'")
        return record_id

    def delete_vocabulary(self, record_id: RecordId) -> bool:
        """Delete a record; returns False when the server no longer has it."""
        resp = self._request("DELETE", f"/api/vocab/{record_id}")
        if resp.status_code == 404:
            logger.debug("Vocabulary %s already gone", record_id)
            return False
        if not 200 <= resp.status_code < 300:
            raise ReaderClientError(f"/api/vocab/{record_id} delete failed with status {resp.status_code}")
        return True

    def close(self) -> None:
        self._session.close()
