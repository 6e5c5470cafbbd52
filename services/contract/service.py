"""
services/contract/service.py
Contracts between a creator and their counterparties (client and/or
assignee).

    creator       DRAFT             -> SENT | CANCELLED
                  SENT              -> DRAFT | CANCELLED
                  UNDER_REVIEW      -> PENDING_SIGNATURE | DRAFT | CANCELLED
                  PENDING_SIGNATURE -> CANCELLED
                  SIGNED            -> EXECUTED
                  EXECUTED          -> COMPLETED
    counterparty  SENT              -> UNDER_REVIEW
                  PENDING_SIGNATURE -> SIGNED | CANCELLED
                  EXECUTED          -> COMPLETED

Open contracts (SENT, UNDER_REVIEW, PENDING_SIGNATURE) lapse to EXPIRED
once expires_at passes; only the sweep sets EXPIRED.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from shared.models.models import (
    OPEN_CONTRACT_STATUSES,
    Contract,
    ContractStatus,
    ContractType,
    NotificationPriority,
    NotificationType,
    User,
    UserRole,
)
from shared.schemas.schemas import ContractCreateRequest, ContractUpdateRequest
from shared.utils.dates import ensure_utc, utcnow
from shared.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)

CREATOR_TRANSITIONS = {
    ContractStatus.DRAFT: {ContractStatus.SENT, ContractStatus.CANCELLED},
    ContractStatus.SENT: {ContractStatus.DRAFT, ContractStatus.CANCELLED},
    ContractStatus.UNDER_REVIEW: {ContractStatus.PENDING_SIGNATURE, ContractStatus.DRAFT, ContractStatus.CANCELLED},
    ContractStatus.PENDING_SIGNATURE: {ContractStatus.CANCELLED},
    ContractStatus.SIGNED: {ContractStatus.EXECUTED},
    ContractStatus.EXECUTED: {ContractStatus.COMPLETED},
}

COUNTERPARTY_TRANSITIONS = {
    ContractStatus.SENT: {ContractStatus.UNDER_REVIEW},
    ContractStatus.PENDING_SIGNATURE: {ContractStatus.SIGNED, ContractStatus.CANCELLED},
    ContractStatus.EXECUTED: {ContractStatus.COMPLETED},
}

DELETABLE_STATUSES = (ContractStatus.DRAFT, ContractStatus.CANCELLED)


def allowed_transitions(contract: Contract, user: User) -> set[ContractStatus]:
    current = ContractStatus(contract.status)
    if user.id == contract.created_by:
        return CREATOR_TRANSITIONS.get(current, set())
    if user.id in contract.counterparty_ids:
        return COUNTERPARTY_TRANSITIONS.get(current, set())
    return set()


def is_party(contract: Contract, user: User) -> bool:
    return user.id == contract.created_by or user.id in contract.counterparty_ids


class ContractService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    async def _check_party_user(self, user_id: Optional[uuid.UUID], creator: User, label: str) -> None:
        if user_id is None:
            return
        if user_id == creator.id:
            raise ValidationError(f"You cannot be the {label} of your own contract")
        party = await self.db.get(User, user_id)
        if party is None or not party.is_active:
            raise NotFoundError(f"{label.capitalize()} not found")

    @staticmethod
    def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start and end and ensure_utc(end) <= ensure_utc(start):
            raise ValidationError("endDate must be after startDate")

    # ── Read ──────────────────────────────────────────────────
    async def get_contract(self, contract_id: uuid.UUID, user: User) -> Contract:
        """Parties and admins only; everyone else gets a 404."""
        contract = await self.db.get(Contract, contract_id)
        if contract is None or not (is_party(contract, user) or user.role == UserRole.ADMIN):
            raise NotFoundError("Contract not found")
        return contract

    async def list_contracts(
        self, user: User, status: Optional[ContractStatus] = None, page: int = 1, limit: int = 10
    ) -> tuple[list[Contract], dict]:
        query = select(Contract).where(
            or_(Contract.created_by == user.id, Contract.client_id == user.id, Contract.assigned_to == user.id)
        )
        if status:
            query = query.where(Contract.status == ContractStatus(status))
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(Contract.created_at.desc()).offset(offset_for(page, limit)).limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    # ── Write ─────────────────────────────────────────────────
    async def create_contract(self, user: User, data: ContractCreateRequest) -> Contract:
        await self._check_party_user(data.client_id, user, "client")
        await self._check_party_user(data.assigned_to, user, "assignee")

        contract = Contract(
            id=uuid.uuid4(),
            created_by=user.id,
            client_id=data.client_id,
            assigned_to=data.assigned_to,
            title=data.title,
            description=data.description,
            content=data.content,
            type=ContractType(data.type),
            status=ContractStatus.DRAFT,
            client_name=data.client_name,
            client_email=data.client_email,
            value=data.value,
            currency=data.currency.upper(),
            start_date=data.start_date,
            end_date=data.end_date,
            expires_at=data.expires_at,
            extra=data.metadata,
        )
        self.db.add(contract)
        await self.db.commit()
        await self.db.refresh(contract)
        logger.info(f"Contract {contract.id} drafted by {user.id}")
        return contract

    async def update_contract(self, contract_id: uuid.UUID, user: User, data: ContractUpdateRequest) -> Contract:
        contract = await self.get_contract(contract_id, user)
        if contract.created_by != user.id:
            raise AuthorizationError("Only the contract's creator can edit it")
        if contract.status != ContractStatus.DRAFT:
            raise ValidationError("Only draft contracts can be edited")

        changes = data.model_dump(exclude_unset=True)
        if "client_id" in changes:
            await self._check_party_user(changes["client_id"], user, "client")
        if "assigned_to" in changes:
            await self._check_party_user(changes["assigned_to"], user, "assignee")
        self._check_dates(changes.get("start_date", contract.start_date), changes.get("end_date", contract.end_date))

        if "type" in changes:
            changes["type"] = ContractType(changes["type"])
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        if "metadata" in changes:
            changes["extra"] = changes.pop("metadata")
        for field, value in changes.items():
            setattr(contract, field, value)

        await self.db.commit()
        await self.db.refresh(contract)
        return contract

    async def delete_contract(self, contract_id: uuid.UUID, user: User) -> None:
        contract = await self.get_contract(contract_id, user)
        if contract.created_by != user.id:
            raise AuthorizationError("Only the contract's creator can delete it")
        if contract.status not in DELETABLE_STATUSES:
            raise ValidationError("Only draft or cancelled contracts can be deleted")
        await self.db.delete(contract)
        await self.db.commit()

    # ── Transitions ───────────────────────────────────────────
    async def update_status(
        self, contract_id: uuid.UUID, user: User, new_status: ContractStatus, reason: Optional[str] = None
    ) -> Contract:
        contract = await self.get_contract(contract_id, user)
        if not is_party(contract, user):
            raise AuthorizationError("You are not a party to this contract")

        current, target = ContractStatus(contract.status), ContractStatus(new_status)
        if target not in allowed_transitions(contract, user):
            raise ValidationError(f"Cannot change contract from {current.value} to {target.value}")
        if target == ContractStatus.SENT and not contract.counterparty_ids:
            raise ValidationError("Add a client or an assignee before sending the contract")
        if target == ContractStatus.SENT and contract.expires_at and ensure_utc(contract.expires_at) <= utcnow():
            raise ValidationError("The contract's expiry date has already passed")

        contract.status = target
        contract.status_reason = reason
        if target == ContractStatus.SIGNED:
            contract.signed_at = utcnow()

        for recipient_id in ({contract.created_by} | contract.counterparty_ids) - {user.id}:
            await self._notify(contract, recipient_id, f"{user.name} marked the contract {target.value}")

        await self.db.commit()
        await self.db.refresh(contract)
        await self.notifications.publish_pending()
        logger.info(f"Contract {contract.id} {current.value} -> {target.value} by {user.id}")
        return contract

    async def _notify(self, contract: Contract, recipient_id: uuid.UUID, message: str) -> None:
        sent = ContractStatus(contract.status) == ContractStatus.SENT
        await self.notifications.send_notification(
            user_id=recipient_id,
            type=NotificationType.CONTRACT_UPDATE,
            title=f'New contract: "{contract.title}"' if sent else f'Contract update: "{contract.title}"',
            message=message,
            metadata={"contractId": str(contract.id), "status": ContractStatus(contract.status).value},
            priority=NotificationPriority.HIGH if sent else NotificationPriority.NORMAL,
            send_email=sent,
        )

    async def expire_contracts(self) -> dict:
        """Lapse open contracts whose expiry has passed and tell their creators."""
        now = utcnow()
        contracts = (await self.db.execute(
            select(Contract).where(
                Contract.status.in_(OPEN_CONTRACT_STATUSES),
                Contract.expires_at.is_not(None),
                Contract.expires_at <= now,
            )
        )).scalars().all()
        for contract in contracts:
            contract.status = ContractStatus.EXPIRED
            await self._notify(contract, contract.created_by, "The contract expired before it was signed")
        await self.db.commit()
        await self.notifications.publish_pending()
        logger.info(f"Contracts expired: {len(contracts)}")
        return {"expired": len(contracts)}
