"""
services/contract/router.py
Contract drafting and the review/signature workflow.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.contract.service import ContractService
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from shared.middleware.auth import get_current_user
from shared.models.models import Contract, ContractStatus, User
from shared.schemas.schemas import (
    ContractCreateRequest,
    ContractResponse,
    ContractStatusUpdateRequest,
    ContractUpdateRequest,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/contracts", tags=["Contracts"])


def get_contract_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> ContractService:
    return ContractService(db, NotificationService(db, realtime))


def _dump(contract: Contract) -> dict:
    return ContractResponse.model_validate(contract).model_dump(by_alias=True)


@router.get("")
async def list_contracts(
    status_filter: Optional[ContractStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Contracts the caller created, is the client of, or is assigned to. Newest first."""
    items, pagination = await service.list_contracts(current_user, status_filter, page, limit)
    return ok([_dump(c) for c in items], pagination=pagination)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contract(
    data: ContractCreateRequest,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.create_contract(current_user, data)
    return ok(_dump(contract), "Contract created")


@router.get("/{contract_id}")
async def get_contract(
    contract_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return ok(_dump(await service.get_contract(contract_id, current_user)))


@router.put("/{contract_id}")
async def update_contract(
    contract_id: UUID,
    data: ContractUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.update_contract(contract_id, current_user, data)
    return ok(_dump(contract), "Contract updated")


@router.patch("/{contract_id}/status")
async def update_contract_status(
    contract_id: UUID,
    data: ContractStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.update_status(contract_id, current_user, data.status, data.reason)
    return ok(_dump(contract), f"Contract {ContractStatus(contract.status).value.lower().replace('_', ' ')}")


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    await service.delete_contract(contract_id, current_user)
    return ok(None, "Contract deleted")
