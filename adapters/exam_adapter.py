"""Adapter for the read-only exam endpoints → :class:`Exam` / :class:`ExamSubject`.

API endpoints handled:
- GET /exams/{examId}           → Exam
- GET /exams/{examId}/subjects  → list[ExamSubject]
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from adapters.collection_adapter import ApiReader, unwrap_data
from errors.exceptions import ApiHttpError, FetchError, NetworkFailure, ResponseParseError
from models.data import Exam, ExamSubject

logger = logging.getLogger(__name__)

_COLLECTION = "exams"


async def get_exam(client: ApiReader, exam_id: str) -> Exam:
    """GET /exams/{examId}"""
    raw = unwrap_data(await _get(client, f"/exams/{exam_id}"))
    if not isinstance(raw, dict):
        raise FetchError(_COLLECTION, 0, "parse error")
    try:
        return Exam.model_validate(raw)
    except ValidationError as exc:
        raise FetchError(_COLLECTION, 0, "parse error") from exc


async def list_exam_subjects(client: ApiReader, exam_id: str) -> list[ExamSubject]:
    """GET /exams/{examId}/subjects"""
    raw = unwrap_data(await _get(client, f"/exams/{exam_id}/subjects"))
    if not isinstance(raw, list):
        logger.warning("list_exam_subjects: expected list, got %s", type(raw).__name__)
        raise FetchError(_COLLECTION, 0, "parse error")
    try:
        return [ExamSubject.model_validate(row) for row in raw]
    except ValidationError as exc:
        raise FetchError(_COLLECTION, 0, "parse error") from exc


async def get_exam_with_subjects(
    client: ApiReader, exam_id: str
) -> tuple[Exam, list[ExamSubject]]:
    """Fetch the exam header and its subjects concurrently."""
    exam, subjects = await asyncio.gather(
        get_exam(client, exam_id),
        list_exam_subjects(client, exam_id),
    )
    return exam, subjects


async def _get(client: ApiReader, path: str) -> Any:
    try:
        return await client.get(path)
    except ApiHttpError as exc:
        raise FetchError(_COLLECTION, exc.status_code, exc.message) from exc
    except ResponseParseError as exc:
        raise FetchError(_COLLECTION, 0, "parse error") from exc
    except NetworkFailure as exc:
        raise FetchError(_COLLECTION, 0, exc.reason) from exc
