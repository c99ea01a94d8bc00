"""Text clean-up endpoints: repair passes, rehydration and whitespace."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..observability import metrics_registry
from ..services.rehydrator import LinkReferenceRehydrator
from ..services.repair import repair_markdown
from ..services.whitespace import WhitespaceNormalizer
from .merge import ensure_within_limit

router = APIRouter(prefix="/api", tags=["repair"])


class TextPayload(BaseModel):
    text: str


class NormalizePayload(TextPayload):
    mode: Literal["basic", "link_refs", "strict"] = "basic"


class RepairResponse(BaseModel):
    text: str
    changed: bool
    issues: Dict[str, List[Dict[str, Any]]]


class CleanupResponse(BaseModel):
    text: str
    changed: bool
    problems: List[Dict[str, Any]]
    rehydration_count: int = 0


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


@router.post("/repair", response_model=RepairResponse, summary="Fix malformed markdown")
def repair_text(payload: TextPayload, settings: Settings = Depends(get_settings)) -> RepairResponse:
    ensure_within_limit(settings, payload.text)
    started = time.perf_counter()
    report = repair_markdown(payload.text)
    metrics_registry.record_operation("repair", _elapsed_ms(started))
    return RepairResponse(**report.to_dict())


@router.post("/rehydrate", response_model=CleanupResponse, summary="Convert inline links to references")
def rehydrate_links(payload: TextPayload, settings: Settings = Depends(get_settings)) -> CleanupResponse:
    ensure_within_limit(settings, payload.text)
    started = time.perf_counter()
    text, rehydrator = LinkReferenceRehydrator.rehydrate_text(payload.text)
    metrics_registry.record_operation("rehydrate", _elapsed_ms(started))
    return CleanupResponse(
        text=text,
        changed=text != payload.text,
        problems=rehydrator.problems.to_list(),
        rehydration_count=rehydrator.rehydration_count,
    )


@router.post("/normalize", response_model=CleanupResponse, summary="Collapse excess blank lines")
def normalize_whitespace(
    payload: NormalizePayload, settings: Settings = Depends(get_settings)
) -> CleanupResponse:
    ensure_within_limit(settings, payload.text)
    started = time.perf_counter()
    text, problems = WhitespaceNormalizer.normalize_text(payload.text, payload.mode)
    metrics_registry.record_operation("normalize", _elapsed_ms(started))
    return CleanupResponse(text=text, changed=text != payload.text, problems=problems.to_list())


__all__ = ["CleanupResponse", "NormalizePayload", "RepairResponse", "TextPayload", "router"]
