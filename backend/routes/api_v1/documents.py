"""Documents API: read-only access to versioned context documents and their changes."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from core.database import DatabaseManager
from core.dependencies import get_db_manager
from core.errors import NotFoundError
from domain.documents import VersionedDocument
from evaluation.context_changes import DEFAULT_CHANGES_COUNT, build_context_changes
from services.document_store import VersionedDocumentStore

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentNamesResponse(BaseModel):
    scope: str
    names: List[str]


class DocumentVersionResponse(BaseModel):
    name: str
    scope: str
    version: int
    content: str
    created_at: datetime

    @classmethod
    def from_document(cls, doc: VersionedDocument) -> "DocumentVersionResponse":
        return cls(
            name=doc.name,
            scope=doc.scope,
            version=doc.version,
            content=doc.content,
            created_at=doc.created_at,
        )


class DocumentChangeResponse(BaseModel):
    name: str
    previous_version: int
    latest_version: int
    previous_created_at: str
    latest_created_at: str
    diff: List[str]


class ContextChangesResponse(BaseModel):
    scope: str
    total_documents: int
    checked: List[str]
    changed: int
    changes: List[DocumentChangeResponse]


def get_document_store(db: DatabaseManager = Depends(get_db_manager)) -> VersionedDocumentStore:
    return VersionedDocumentStore(db)


@router.get(
    "/{scope}",
    summary="List document names in a scope",
    response_model=DocumentNamesResponse,
)
async def list_documents(
    scope: str,
    store: VersionedDocumentStore = Depends(get_document_store),
) -> DocumentNamesResponse:
    names = await store.list_names(scope)
    return DocumentNamesResponse(scope=scope, names=sorted(names))


@router.get(
    "/{scope}/changes",
    summary="Diff latest against previous version",
    description="For up to `count` documents (seeded random selection when more exist).",
    response_model=ContextChangesResponse,
)
async def get_context_changes(
    scope: str,
    count: int = Query(DEFAULT_CHANGES_COUNT, ge=0),
    seed: Optional[int] = Query(None),
    store: VersionedDocumentStore = Depends(get_document_store),
) -> ContextChangesResponse:
    report = await build_context_changes(store, scope, count, seed)
    return ContextChangesResponse(**report.to_dict())


@router.get(
    "/{scope}/{name}/latest",
    summary="Latest version of a document",
    response_model=DocumentVersionResponse,
)
async def get_latest_document(
    scope: str,
    name: str,
    store: VersionedDocumentStore = Depends(get_document_store),
) -> DocumentVersionResponse:
    doc = await store.get_latest(name, scope)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Document {name!r} not found in scope {scope!r}")
    return DocumentVersionResponse.from_document(doc)


@router.get(
    "/{scope}/{name}/versions/{version}",
    summary="Exact version of a document",
    response_model=DocumentVersionResponse,
)
async def get_document_version(
    scope: str,
    name: str,
    version: int,
    store: VersionedDocumentStore = Depends(get_document_store),
) -> DocumentVersionResponse:
    try:
        doc = await store.get_version(name, scope, version)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return DocumentVersionResponse.from_document(doc)
