"""Read-only reference lists for class forms: clients, sites, staff, learners, SETA bodies and calendars."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth.dependencies import get_current_user
from app.core.exceptions import ServiceError

from .schemas import PublicHoliday, ReferenceItem, SiteItem
from . import service

# Any authenticated caller may read reference lists
router = APIRouter(
    prefix="/api/v1/reference",
    tags=["reference"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/clients", response_model=List[ReferenceItem])
async def list_clients() -> List[ReferenceItem]:
    try:
        return service.list_clients()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/sites", response_model=List[SiteItem])
async def list_sites(client_id: Optional[int] = Query(None, description="Only this client's sites")) -> List[SiteItem]:
    try:
        return service.list_sites(client_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/agents", response_model=List[ReferenceItem])
async def list_agents() -> List[ReferenceItem]:
    try:
        return service.list_agents()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/supervisors", response_model=List[ReferenceItem])
async def list_supervisors() -> List[ReferenceItem]:
    try:
        return service.list_supervisors()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/learners", response_model=List[ReferenceItem])
async def list_learners() -> List[ReferenceItem]:
    try:
        return service.list_learners()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/setas", response_model=List[ReferenceItem])
async def list_seta_bodies() -> List[ReferenceItem]:
    try:
        return service.list_seta_bodies()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/class-types", response_model=List[ReferenceItem])
async def list_class_types() -> List[ReferenceItem]:
    try:
        return service.list_class_types()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/class-subjects", response_model=Dict[str, List[str]])
async def list_class_subjects(class_type: Optional[str] = Query(None)) -> Dict[str, List[str]]:
    try:
        return service.list_class_subjects(class_type)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/exam-types", response_model=List[str])
async def list_exam_types() -> List[str]:
    try:
        return service.list_exam_types()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/class-note-types", response_model=List[str])
async def list_class_note_types() -> List[str]:
    try:
        return service.list_class_note_types()
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/public-holidays", response_model=List[PublicHoliday])
async def list_public_holidays(
    year: Optional[int] = Query(None, ge=1900, le=2100, description="Defaults to the current year"),
) -> List[PublicHoliday]:
    try:
        return service.list_public_holidays(year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
