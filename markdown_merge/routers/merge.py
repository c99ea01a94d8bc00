"""Whole-document and single-section merge endpoints."""

from __future__ import annotations

import re
import time
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..config import Settings, get_settings
from ..observability import metrics_registry
from ..services.partial_template import PartialMergeResult, PartialTemplateMerger
from ..services.smart_merger import MergeResult, SmartMerger
from ..services.table_match import TableMatchRefiner

router = APIRouter(prefix="/api", tags=["merge"])


class MergeRequest(BaseModel):
    """Template and destination documents plus merge options."""

    template: str
    destination: str
    backend: Optional[str] = None
    preference: Optional[Union[str, Dict[str, str]]] = None
    add_template_only_nodes: bool = False
    remove_template_missing_nodes: bool = False
    freeze_token: Optional[str] = None
    inner_merge_code_blocks: bool = False
    match_tables: bool = False
    table_match_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    code_block_signature: Literal["content", "position"] = "content"
    repair_input: bool = False
    normalize_whitespace: Union[bool, str] = False
    rehydrate_link_references: bool = False


class MergeResponse(BaseModel):
    content: str
    success: bool
    stats: Dict[str, Any]
    conflicts: List[Dict[str, Any]]
    frozen_blocks: List[Dict[str, Any]]
    problems: List[Dict[str, Any]]

    @classmethod
    def from_result(cls, result: MergeResult) -> "MergeResponse":
        return cls(**result.to_dict())


class SectionMergeRequest(BaseModel):
    """Merge ``template`` into the destination section under ``anchor``."""

    template: str
    destination: str
    anchor: str = Field(min_length=1)
    level: Optional[int] = Field(default=None, ge=1, le=6)
    anchor_is_regex: bool = False
    backend: Optional[str] = None
    preference: Union[str, Dict[str, str]] = "template"
    add_missing: bool = True
    when_missing: Literal["skip", "append", "prepend"] = "skip"
    replace_mode: bool = False
    normalize_whitespace: Union[bool, str] = False
    rehydrate_link_references: bool = False


class SectionMergeResponse(BaseModel):
    content: str
    has_section: bool
    changed: bool
    stats: Dict[str, Any]
    problems: List[Dict[str, Any]]
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: PartialMergeResult) -> "SectionMergeResponse":
        return cls(**result.to_dict())


def ensure_within_limit(settings: Settings, *documents: str) -> None:
    """Reject requests whose documents exceed the configured size limit."""

    for document in documents:
        if len(document.encode("utf-8")) > settings.max_document_bytes:
            metrics_registry.record_failure("document_too_large")
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail={
                    "code": "document_too_large",
                    "message": f"documents are limited to {settings.max_document_bytes} bytes",
                },
            )


@router.post("/merge", response_model=MergeResponse, summary="Merge a template into a destination")
def merge_documents(
    payload: MergeRequest, settings: Settings = Depends(get_settings)
) -> MergeResponse:
    ensure_within_limit(settings, payload.template, payload.destination)
    refiner = None
    if payload.match_tables:
        threshold = payload.table_match_threshold
        refiner = TableMatchRefiner(
            threshold=settings.table_match_threshold if threshold is None else threshold
        )
    merger = SmartMerger(
        payload.template,
        payload.destination,
        backend=payload.backend or settings.backend,
        preference=payload.preference or settings.preference,
        add_template_only_nodes=payload.add_template_only_nodes,
        remove_template_missing_nodes=payload.remove_template_missing_nodes,
        freeze_token=payload.freeze_token or settings.freeze_token,
        inner_merge_code_blocks=payload.inner_merge_code_blocks,
        match_refiner=refiner,
        code_block_signature=payload.code_block_signature,
        repair_input=payload.repair_input,
        normalize_whitespace=payload.normalize_whitespace,
        rehydrate_link_references=payload.rehydrate_link_references,
    )
    result = merger.merge_result()
    metrics_registry.record_merge("merge", result.stats.to_dict(), result.frozen_count)
    return MergeResponse.from_result(result)


@router.post(
    "/merge/section",
    response_model=SectionMergeResponse,
    summary="Merge a template snippet into one section",
)
def merge_section(
    payload: SectionMergeRequest, settings: Settings = Depends(get_settings)
) -> SectionMergeResponse:
    ensure_within_limit(settings, payload.template, payload.destination)
    if payload.anchor_is_regex:
        try:
            anchor: Any = re.compile(payload.anchor)
        except re.error as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "invalid_anchor", "message": str(exc)},
            ) from exc
    else:
        anchor = payload.anchor
    started = time.perf_counter()
    merger = PartialTemplateMerger(
        payload.template,
        payload.destination,
        anchor,
        level=payload.level,
        backend=payload.backend or settings.backend,
        preference=payload.preference,
        add_missing=payload.add_missing,
        when_missing=payload.when_missing,
        replace_mode=payload.replace_mode,
        normalize_whitespace=payload.normalize_whitespace,
        rehydrate_link_references=payload.rehydrate_link_references,
    )
    result = merger.merge()
    stats = dict(result.stats)
    stats.setdefault("merge_time_ms", (time.perf_counter() - started) * 1000.0)
    metrics_registry.record_merge("merge_section", stats)
    return SectionMergeResponse.from_result(result)


__all__ = [
    "MergeRequest",
    "MergeResponse",
    "SectionMergeRequest",
    "SectionMergeResponse",
    "ensure_within_limit",
    "router",
]
