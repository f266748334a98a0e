"""Weight record endpoints."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth import AuthenticatedUser, get_current_user
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import (
    BatchWeightCreate,
    BatchWeightResponse,
    MessageResponse,
    MultiMaterialCreate,
    MultiMaterialResponse,
    RecordStatusUpdate,
    WeightRecordCreate,
    WeightRecordEnvelope,
    WeightRecordListResponse,
)
from ..use_cases.weight_records import (
    create_batch_records_use_case,
    create_multi_material_records_use_case,
    create_weight_record_use_case,
    delete_weight_record_use_case,
    get_weight_record_use_case,
    list_weight_records_use_case,
    update_record_status_use_case,
)

router = APIRouter(prefix="/weights", tags=["weights"])


@router.get("", response_model=WeightRecordListResponse)
def list_weight_records(
    item_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """List weight records, newest first."""
    return list_weight_records_use_case(
        repos=repos,
        current_user=current_user,
        item_id=item_id,
        user_id=user_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.post("", response_model=WeightRecordEnvelope, status_code=status.HTTP_201_CREATED)
def create_weight_record(
    data: WeightRecordCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    record = create_weight_record_use_case(repos=repos, data=data, current_user=current_user)
    return {"message": "Weight record created successfully", "record": record}


@router.post("/multi-material", response_model=MultiMaterialResponse, status_code=status.HTTP_201_CREATED)
def create_multi_material_records(
    data: MultiMaterialCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Create one record per material entry, all or nothing."""
    return create_multi_material_records_use_case(repos=repos, data=data, current_user=current_user)


@router.post("/batch", response_model=BatchWeightResponse, status_code=status.HTTP_201_CREATED)
def create_batch_records(
    data: BatchWeightCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Create one record per weighing of a single material, all or nothing."""
    return create_batch_records_use_case(repos=repos, data=data, current_user=current_user)


@router.get("/{record_id}", response_model=WeightRecordEnvelope)
def get_weight_record(
    record_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    record = get_weight_record_use_case(repos=repos, record_id=record_id, current_user=current_user)
    return {"record": record}


@router.put("/{record_id}", response_model=WeightRecordEnvelope)
def update_record_status(
    record_id: int,
    data: RecordStatusUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Approve, reject or reset a record."""
    record = update_record_status_use_case(repos=repos, record_id=record_id, data=data, current_user=current_user)
    return {"message": "Weight record updated successfully", "record": record}


@router.delete("/{record_id}", response_model=MessageResponse)
def delete_weight_record(
    record_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    delete_weight_record_use_case(repos=repos, record_id=record_id, current_user=current_user)
    return {"message": "Weight record deleted successfully"}
