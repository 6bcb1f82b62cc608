"""Document persistence behind a single write(path, document) / read(path) seam.

Two backends:
- JsonDocumentStore: one JSON file per document path under a data directory.
- FirestoreRestStore: Firestore REST API via httpx (production or emulator).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

from tutorflow.config import Settings, settings

log = logging.getLogger(__name__)


class DocumentStoreError(RuntimeError):
    """Storage backend failed to read or write a document."""


class DocumentWriter(Protocol):
    def write(self, path: str, document: dict) -> None: ...


class DocumentStore(DocumentWriter, Protocol):
    def read(self, path: str) -> Optional[dict]: ...


def _segments(path: str) -> list[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise DocumentStoreError(f"Invalid document path: {path!r}")
    return parts


def merge_documents(old: dict, new: dict) -> dict:
    """Deep merge: maps merge key by key, any other value in `new` replaces the old one."""
    merged = dict(old)
    for key, value in new.items():
        if isinstance(value, dict) and value and isinstance(merged.get(key), dict):
            merged[key] = merge_documents(merged[key], value)
        else:
            merged[key] = value
    return merged


def _quote_field(name: str) -> str:
    escaped = str(name).replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def field_paths(document: dict, prefix: str = "") -> list[str]:
    """Firestore field paths for every leaf of `document` (non-empty maps are walked)."""
    paths = []
    for key, value in document.items():
        path = f"{prefix}{_quote_field(key)}"
        if isinstance(value, dict) and value:
            paths.extend(field_paths(value, f"{path}."))
        else:
            paths.append(path)
    return paths


class JsonDocumentStore:
    """Persists documents as JSON files, mirroring the document path on disk.

    `curriculum/x` is stored at `<data_dir>/curriculum/x.json`, and
    `curriculum/x/flows/main` at `<data_dir>/curriculum/x/flows/main.json`.
    Writes deep-merge into an existing document (see merge_documents).
    """

    def __init__(self, data_dir: str = "data"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _doc_path(self, path: str) -> Path:
        *parents, name = _segments(path)
        return self.data_dir.joinpath(*parents) / f"{name}.json"

    def read(self, path: str) -> Optional[dict]:
        doc_path = self._doc_path(path)
        if not doc_path.exists():
            return None
        try:
            data = json.loads(doc_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise DocumentStoreError(f"Corrupted document {path}: {e}") from e
        return data if isinstance(data, dict) else None

    def write(self, path: str, document: dict) -> None:
        doc_path = self._doc_path(path)
        merged = merge_documents(self.read(path) or {}, document)
        doc_path.parent.mkdir(parents=True, exist_ok=True)
        doc_path.write_text(json.dumps(merged, indent=2, ensure_ascii=False), encoding="utf-8")
        log.debug(f"Wrote {path} -> {doc_path}")


def encode_value(value: Any) -> dict:
    """Python value -> Firestore REST typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {str(k): encode_value(v) for k, v in value.items()}}}
    raise DocumentStoreError(f"Unsupported Firestore value type: {type(value).__name__}")


def decode_value(value: dict) -> Any:
    """Firestore REST typed value -> Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return {k: decode_value(v) for k, v in value["mapValue"].get("fields", {}).items()}
    # timestamps, references, geo points, bytes: keep the raw string form
    return next(iter(value.values()), None)


class FirestoreRestStore:
    """Firestore documents over the REST API.

    Writes PATCH with an update mask naming every leaf field of `document`
    (nested maps are walked), so fields absent from `document` are kept at
    every depth, like set(..., merge=True). Lists and empty maps are set whole.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.project_id = project_id or settings.FIRESTORE_PROJECT_ID
        self.base = (base_url or settings.FIRESTORE_BASE_URL).rstrip("/")
        self.headers = {"content-type": "application/json"}
        if token:
            self.headers["authorization"] = f"Bearer {token}"
        self.client = client or httpx.Client(timeout=timeout or settings.FIRESTORE_TIMEOUT)

    def _url(self, path: str) -> str:
        doc_path = "/".join(_segments(path))
        return (
            f"{self.base}/v1/projects/{self.project_id}"
            f"/databases/(default)/documents/{doc_path}"
        )

    def read(self, path: str) -> Optional[dict]:
        try:
            r = self.client.get(self._url(path), headers=self.headers)
            if r.status_code == 404:
                return None
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"Firestore read failed for {path}: {e}") from e
        fields = r.json().get("fields", {})
        return {k: decode_value(v) for k, v in fields.items()}

    def write(self, path: str, document: dict) -> None:
        if not document:
            # An empty mask would make the PATCH replace the whole document.
            log.debug(f"Nothing to write for {path}")
            return
        body = {"fields": {str(k): encode_value(v) for k, v in document.items()}}
        params = [("updateMask.fieldPaths", p) for p in field_paths(document)]
        try:
            r = self.client.patch(self._url(path), headers=self.headers, params=params, json=body)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"Firestore write failed for {path}: {e}") from e
        log.debug(f"Wrote {path} to Firestore project {self.project_id}")


def get_document_store(config: Settings = settings) -> DocumentStore:
    """Select the backend named by DOCUMENT_STORE."""
    backend = config.DOCUMENT_STORE.lower()
    if backend == "json":
        return JsonDocumentStore(config.DATA_DIR)
    if backend == "firestore":
        if config.FIRESTORE_EMULATOR_HOST:
            log.info(f"Using Firestore emulator at {config.FIRESTORE_EMULATOR_HOST}")
            return FirestoreRestStore(
                project_id=config.FIRESTORE_PROJECT_ID,
                base_url=f"http://{config.FIRESTORE_EMULATOR_HOST}",
                timeout=config.FIRESTORE_TIMEOUT,
            )
        return FirestoreRestStore(
            project_id=config.FIRESTORE_PROJECT_ID,
            base_url=config.FIRESTORE_BASE_URL,
            token=config.FIRESTORE_TOKEN,
            timeout=config.FIRESTORE_TIMEOUT,
        )
    raise ValueError(f"Unknown DOCUMENT_STORE: {config.DOCUMENT_STORE!r}")
