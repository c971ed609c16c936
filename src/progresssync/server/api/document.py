"""Progress document API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from progresssync.core.document import DocumentValidationError, document_stats
from progresssync.server.api.deps import get_coordinator, get_current_owner
from progresssync.server.coordinator import (
    ConcurrentWriteError,
    DocumentConflict,
    MalformedSubmissionError,
    SyncCoordinator,
)
from progresssync.server.schemas import (
    ConflictResponse,
    DocumentOverrideRequest,
    DocumentResponse,
    DocumentSubmitRequest,
    StatsResponse,
    conflict_to_response,
    days_from_models,
    document_to_response,
)

router = APIRouter(prefix="/api", tags=["document"])


@router.get("/document", response_model=DocumentResponse)
def get_document(
    coordinator: SyncCoordinator = Depends(get_coordinator),
    owner_id: str = Depends(get_current_owner),
) -> DocumentResponse:
    """Get the owner's document, creating the seeded default on first call."""
    return document_to_response(coordinator.load(owner_id))


@router.post(
    "/document",
    response_model=DocumentResponse,
    responses={status.HTTP_409_CONFLICT: {"model": ConflictResponse}},
)
def submit_document(
    request: DocumentSubmitRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    owner_id: str = Depends(get_current_owner),
) -> DocumentResponse | JSONResponse:
    """Submit the client's document with conflict detection."""
    try:
        document = coordinator.submit(
            owner_id,
            days_from_models(request.data),
            client_version=request.client_version,
            client_last_updated=request.last_updated,
        )
    except (MalformedSubmissionError, DocumentValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except DocumentConflict as e:
        body = conflict_to_response(e.conflict)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=body.model_dump(by_alias=True, mode="json"),
        )
    except ConcurrentWriteError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    return document_to_response(document)


@router.post("/document/override", response_model=DocumentResponse)
def override_document(
    request: DocumentOverrideRequest,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    owner_id: str = Depends(get_current_owner),
) -> DocumentResponse:
    """Replace the stored document with the client's, skipping conflict checks."""
    try:
        document = coordinator.override(owner_id, days_from_models(request.data))
    except (MalformedSubmissionError, DocumentValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except ConcurrentWriteError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    return document_to_response(document)


@router.post("/document/force-sync", response_model=DocumentResponse)
def force_sync(
    coordinator: SyncCoordinator = Depends(get_coordinator),
    owner_id: str = Depends(get_current_owner),
) -> DocumentResponse:
    """Return the authoritative document unconditionally."""
    return document_to_response(coordinator.force_sync(owner_id))


@router.get("/document/stats", response_model=StatsResponse)
def get_stats(
    coordinator: SyncCoordinator = Depends(get_coordinator),
    owner_id: str = Depends(get_current_owner),
) -> StatsResponse:
    """Count completed items by difficulty."""
    return StatsResponse(**document_stats(coordinator.load(owner_id).days))
