"""Seed simplified curriculum JSON (and its compiled flow) into a document store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from tutorflow.flow_builder import as_document, build_flow, flow_doc_path, subtopic_doc_path
from tutorflow.services.document_store import DocumentWriter

log = logging.getLogger(__name__)


class CurriculumError(ValueError):
    """Curriculum document is missing required structure."""


def load_curriculum(file_path: str | Path) -> dict:
    path = Path(file_path)
    if not path.exists():
        raise CurriculumError(f"File not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise CurriculumError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise CurriculumError(f"Expected a JSON object in {path}")
    return data


def upsert_simplified_subtopic(raw: dict, writer: DocumentWriter, seed_flow: bool = False) -> dict:
    """Write the raw document, and optionally its flow, under its curriculum path.

    Returns {"path": ..., "flow_path": ...} (flow_path is None when not seeded).
    """
    doc = as_document(raw)
    if doc.path is None or not doc.path.is_complete():
        raise CurriculumError("Invalid simplified JSON: missing path.grade/subject/topic/subtopic")

    doc_path = subtopic_doc_path(doc.path)
    writer.write(doc_path, raw)
    log.info(f"Seeded subtopic: {doc_path}")

    flow_path: Optional[str] = None
    if seed_flow:
        flow = build_flow(doc)
        flow_path = flow_doc_path(doc.path)
        writer.write(flow_path, flow.to_document())
        log.info(f"Seeded flow: {flow_path} ({len(flow.states)} states)")

    return {"path": doc_path, "flow_path": flow_path}


def upsert_from_file(file_path: str | Path, writer: DocumentWriter, seed_flow: bool = False) -> dict:
    return upsert_simplified_subtopic(load_curriculum(file_path), writer, seed_flow=seed_flow)
