"""
Personal membership order form.

    POST /api/v1/forms/personal-membership : place an order, returns an orderer token
    GET  /api/v1/forms/personal-membership : view the order (orderer token)
    PUT  /api/v1/forms/personal-membership : edit an unpaid order (orderer token)

Payment is collected offline by the student council, so placing an order only
creates an unactivated member.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import get_orderer
from auth.jwt_service import OrdererToken, create_orderer_token
from database import get_db
from models import (
    MembershipPurchaseChannel,
    PartnerSchool,
    PersonalMembershipOrder,
    StudentMember,
)
from schemas import (
    OrdererTokenResponse,
    PersonalMembershipOrderCreate,
    PersonalMembershipOrderResponse,
    PersonalMembershipOrderUpdate,
)
from utils.audit import audit
from utils.errors import KnownErrorCode, bad_request, not_found

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/forms", tags=["forms"])

EDITABLE_FIELDS = ("class_name", "number", "real_name", "need_sticker")


async def _get_order_or_404(db: AsyncSession, order_id: int) -> PersonalMembershipOrder:
    order = await db.get(PersonalMembershipOrder, order_id)
    if order is None:
        raise not_found(KnownErrorCode.NOT_FOUND, "Order not found")
    return order


@router.post("/personal-membership", response_model=OrdererTokenResponse)
async def order_personal_membership(
    body: PersonalMembershipOrderCreate,
    db: AsyncSession = Depends(get_db),
):
    """Place a personal membership order."""
    school = await db.get(PartnerSchool, body.school_id)
    if school is None:
        raise bad_request(KnownErrorCode.MISMATCH, "Invalid partner school ID")

    member = StudentMember(
        school_attended_id=school.id,
        purchase_channel=MembershipPurchaseChannel.Personal,
        has_stickers=body.need_sticker,
    )
    db.add(member)
    await db.flush()

    order = PersonalMembershipOrder(
        member_id=member.id,
        school_id=school.id,
        class_name=body.class_name,
        number=body.number,
        real_name=body.real_name,
        need_sticker=body.need_sticker,
        is_paid=False,
    )
    db.add(order)
    await db.commit()

    audit.log_order_change("CREATE", order.id, school.id)
    return OrdererTokenResponse(token=create_orderer_token(order.id))


@router.get("/personal-membership", response_model=PersonalMembershipOrderResponse)
async def view_personal_membership_order(
    orderer: OrdererToken = Depends(get_orderer),
    db: AsyncSession = Depends(get_db),
):
    return await _get_order_or_404(db, orderer.order_id)


@router.put("/personal-membership", response_model=PersonalMembershipOrderResponse)
async def update_personal_membership_order(
    body: PersonalMembershipOrderUpdate,
    orderer: OrdererToken = Depends(get_orderer),
    db: AsyncSession = Depends(get_db),
):
    """Edit an order. Paid orders are frozen."""
    order = await _get_order_or_404(db, orderer.order_id)
    if order.is_paid:
        raise bad_request(KnownErrorCode.MISMATCH, "Paid orders cannot be edited")

    changes = []
    for field in EDITABLE_FIELDS:
        value = getattr(body, field)
        if getattr(order, field) != value:
            setattr(order, field, value)
            changes.append(field)

    if changes:
        await db.commit()
        await db.refresh(order)
        audit.log_order_change("UPDATE", order.id, order.school_id, changes)

    return order
