from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import BusinessRuleError, ServiceError, ValidationError
from app.db.session import get_db

from .schemas import (
    ClassFilters,
    ClassNoteCreate,
    ClassPaginatedResponse,
    ClassProgressResponse,
    ClassRecord,
    ClassStatistics,
    GeneratedClassCode,
)
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _http_error(e: ServiceError) -> HTTPException:
    # Field-level and rule-level failures keep their detail so forms can show each message
    if isinstance(e, ValidationError):
        return HTTPException(status_code=e.status_code, detail={"message": e.message, "errors": e.errors})
    if isinstance(e, BusinessRuleError):
        return HTTPException(status_code=e.status_code, detail={"message": e.message, "errors": e.messages})
    return HTTPException(status_code=e.status_code, detail=e.message)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")


@router.post(
    "",
    response_model=ClassRecord,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("classes", "create"))],
)
async def create_class(
    payload: Dict[str, Any] = Body(..., description="Class fields; see ClassRecord"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassRecord:
    try:
        return await service.create_class(db, payload, performed_by=current_user.id)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "",
    response_model=ClassPaginatedResponse,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, description="Page size; capped by CLASS_PAGE_SIZE_MAX"),
    client_id: Optional[int] = Query(None),
    class_type: Optional[str] = Query(None),
    class_agent: Optional[int] = Query(None),
    project_supervisor_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Matches class code or subject"),
    db: AsyncSession = Depends(get_db),
) -> ClassPaginatedResponse:
    filters = ClassFilters(
        client_id=client_id,
        class_type=class_type,
        class_agent=class_agent,
        project_supervisor_id=project_supervisor_id,
        search=search,
    )
    try:
        items, total = await service.list_classes(db, filters, page=page, page_size=limit)
    except ServiceError as e:
        raise _http_error(e)
    page_size = service.effective_page_size(limit)
    total_pages = (total + page_size - 1) // page_size
    return ClassPaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


@router.get(
    "/upcoming",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_upcoming_classes(
    days: Optional[int] = Query(None, ge=0, description="Window in days; defaults to UPCOMING_WINDOW_DAYS"),
    db: AsyncSession = Depends(get_db),
) -> List[ClassRecord]:
    try:
        return await service.get_upcoming_classes(db, days=days)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/statistics",
    response_model=ClassStatistics,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_statistics(db: AsyncSession = Depends(get_db)) -> ClassStatistics:
    try:
        return await service.get_dashboard_statistics(db)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/generate-code",
    response_model=GeneratedClassCode,
    dependencies=[Depends(check_permission("classes", "create"))],
)
async def generate_class_code(
    client_id: int = Query(..., ge=0),
    class_type: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> GeneratedClassCode:
    """Next free code for the client and class type, e.g. EMP-011-0001."""
    try:
        return GeneratedClassCode(class_code=await service.generate_class_code(db, client_id, class_type))
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/date-range",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes_in_date_range(
    start_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    end_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    db: AsyncSession = Depends(get_db),
) -> List[ClassRecord]:
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_date must not be before start_date")
    try:
        return await service.get_classes_by_date_range(db, start_date, end_date)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/export/excel",
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def export_classes_excel(
    client_id: Optional[int] = Query(None),
    class_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download matching classes as an Excel workbook (newest first, capped by EXPORT_LIMIT)."""
    try:
        rows = await service.export_classes(
            db, ClassFilters(client_id=client_id, class_type=class_type, search=search)
        )
    except ServiceError as e:
        raise _http_error(e)
    filename = f"classes_export_{date.today().strftime('%Y%m%d')}.xlsx"
    return Response(
        content=service.build_export_workbook(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get(
    "/by-code/{class_code}",
    response_model=ClassRecord,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_class_by_code(class_code: str, db: AsyncSession = Depends(get_db)) -> ClassRecord:
    try:
        obj = await service.get_class_by_code(db, class_code)
    except ServiceError as e:
        raise _http_error(e)
    if not obj:
        raise _not_found()
    return obj


@router.get(
    "/by-agent/{agent_id}",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes_by_agent(agent_id: int, db: AsyncSession = Depends(get_db)) -> List[ClassRecord]:
    """Classes the agent runs, started, or backs up."""
    try:
        return await service.get_classes_by_agent(db, agent_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/by-supervisor/{supervisor_id}",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes_by_supervisor(supervisor_id: int, db: AsyncSession = Depends(get_db)) -> List[ClassRecord]:
    try:
        return await service.get_classes_by_supervisor(db, supervisor_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/by-client/{client_id}",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes_by_client(client_id: int, db: AsyncSession = Depends(get_db)) -> List[ClassRecord]:
    try:
        return await service.get_classes_by_client(db, client_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/by-learner/{learner_id}",
    response_model=List[ClassRecord],
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def list_classes_by_learner(learner_id: int, db: AsyncSession = Depends(get_db)) -> List[ClassRecord]:
    try:
        return await service.get_classes_by_learner(db, learner_id)
    except ServiceError as e:
        raise _http_error(e)


@router.get(
    "/{class_id}",
    response_model=ClassRecord,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_class(class_id: int, db: AsyncSession = Depends(get_db)) -> ClassRecord:
    try:
        obj = await service.get_class(db, class_id)
    except ServiceError as e:
        raise _http_error(e)
    if not obj:
        raise _not_found()
    return obj


@router.get(
    "/{class_id}/progress",
    response_model=ClassProgressResponse,
    dependencies=[Depends(check_permission("classes", "read"))],
)
async def get_class_progress(class_id: int, db: AsyncSession = Depends(get_db)) -> ClassProgressResponse:
    try:
        obj = await service.get_class(db, class_id)
    except ServiceError as e:
        raise _http_error(e)
    if not obj:
        raise _not_found()
    end_date = None
    if obj.original_start_date is not None and obj.class_duration:
        end_date = service.calculate_end_date(obj.original_start_date, obj.class_duration)
    return ClassProgressResponse(
        class_id=obj.class_id,
        start_date=obj.original_start_date,
        end_date=end_date,
        progress=round(service.get_class_progress(obj), 2),
        is_active=service.is_class_active(obj),
    )


@router.put(
    "/{class_id}",
    response_model=ClassRecord,
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def update_class(
    class_id: int,
    payload: Dict[str, Any] = Body(..., description="Only the supplied fields are changed"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassRecord:
    try:
        obj = await service.update_class(db, class_id, payload, performed_by=current_user.id)
    except ServiceError as e:
        raise _http_error(e)
    if not obj:
        raise _not_found()
    return obj


@router.post(
    "/{class_id}/notes",
    response_model=ClassRecord,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("classes", "update"))],
)
async def add_class_note(
    class_id: int,
    payload: ClassNoteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassRecord:
    try:
        return await service.add_class_note(db, class_id, payload, performed_by=current_user.id)
    except ServiceError as e:
        raise _http_error(e)


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("classes", "delete"))],
)
async def delete_class(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        deleted = await service.delete_class(db, class_id, performed_by=current_user.id)
    except ServiceError as e:
        raise _http_error(e)
    if not deleted:
        raise _not_found()
