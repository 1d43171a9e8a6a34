"""Visit endpoints."""

from typing import Any

from fastapi import APIRouter, Body, status

from hospitalms.api.dependencies import StoreDep
from hospitalms.api.errors import APIError, unwrap
from hospitalms.api.services.collection_service import CollectionService
from hospitalms.domain.models import Visit

router = APIRouter(prefix="/api/visits", tags=["visits"])


def _service(storage) -> CollectionService:
    # newest visits first
    return CollectionService(storage, Visit, sort_by="visit_date", descending=True)


@router.get("")
@router.get("/", include_in_schema=False)
def list_visits(storage: StoreDep):
    return unwrap(_service(storage).list_all(), "Error fetching visits")


@router.get("/doctor/{doctor_id}")
def list_visits_by_doctor(doctor_id: str, storage: StoreDep):
    return unwrap(_service(storage).list_by("doctor_id", doctor_id), "Error fetching doctor visits")


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_visits(storage: StoreDep, payload: Any = Body(...)):
    if not isinstance(payload, list):
        raise APIError(400, "Expected array of visits")
    created = unwrap(
        _service(storage).create_many(payload),
        "Bulk insert failed",
        duplicate_message="Duplicate visit_id found. Visit IDs must be unique.",
    )
    return {"message": "Visits inserted", "count": len(created), "visits": created}


@router.get("/{visit_id}")
def get_visit(visit_id: str, storage: StoreDep):
    visit = unwrap(_service(storage).get(visit_id), "Error fetching visit")
    if visit is None:
        raise APIError(404, "Visit not found")
    return visit


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_visit(storage: StoreDep, payload: dict = Body(...)):
    visit = unwrap(
        _service(storage).create(payload),
        "Error creating visit",
        duplicate_message="Visit ID already exists",
    )
    return {"message": "Visit created", "visit": visit}


@router.put("/{visit_id}")
def update_visit(visit_id: str, storage: StoreDep, changes: dict = Body(...)):
    visit = unwrap(_service(storage).update(visit_id, changes), "Error updating visit")
    if visit is None:
        raise APIError(404, "Visit not found")
    return {"message": "Visit updated", "visit": visit}


@router.delete("/{visit_id}")
def delete_visit(visit_id: str, storage: StoreDep):
    visit = unwrap(_service(storage).delete(visit_id), "Delete failed")
    if visit is None:
        raise APIError(404, "Visit not found")
    return {"message": "Visit deleted", "visit": visit}
