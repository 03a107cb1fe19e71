"""
Partner school endpoints.

Public:
    GET   /api/v1/school                                  : list partner schools
    GET   /api/v1/resources/partner-school                : same list (legacy path)

Staff with ``manage_schools``:
    GET   /api/v1/school/{id}/eligible-students/statistics
    POST  /api/v1/school/{id}/eligible-students           : append one student ID
    PUT   /api/v1/school/{id}/eligible-students           : replace the list
    PATCH /api/v1/school/{id}/eligible-students/config    : toggle the eligibility check
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import AuthContext, require_staff_permission
from database import get_db
from models import PartnerSchool, StaffPermission, StudentMember
from schemas import (
    EligibilityConfigUpdate,
    EligibleStudentAdd,
    EligibleStudentsReplace,
    EligibleStudentsStatistics,
    PartnerSchoolResponse,
)
from utils.audit import audit
from utils.errors import KnownErrorCode, not_found

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/school", tags=["school"])
resources_router = APIRouter(prefix="/api/v1/resources", tags=["resources"])

require_manage_schools = require_staff_permission(StaffPermission.MANAGE_SCHOOLS)


async def _list_schools(db: AsyncSession) -> List[PartnerSchool]:
    result = await db.execute(select(PartnerSchool).order_by(PartnerSchool.id))
    return list(result.scalars().all())


async def _get_school_or_404(db: AsyncSession, school_id: int) -> PartnerSchool:
    school = await db.get(PartnerSchool, school_id)
    if school is None:
        raise not_found(KnownErrorCode.NOT_FOUND, f"Partner school {school_id} not found")
    return school


@router.get("", response_model=List[PartnerSchoolResponse])
async def list_partner_schools(db: AsyncSession = Depends(get_db)):
    """List every partner school of the current alliance term."""
    return await _list_schools(db)


@resources_router.get("/partner-school", response_model=List[PartnerSchoolResponse])
async def list_partner_schools_legacy(db: AsyncSession = Depends(get_db)):
    return await _list_schools(db)


@router.get(
    "/{school_id}/eligible-students/statistics",
    response_model=EligibleStudentsStatistics,
)
async def get_eligible_students_statistics(
    school_id: int,
    auth: AuthContext = Depends(require_manage_schools),
    db: AsyncSession = Depends(get_db),
):
    """
    Size of the eligibility list and how many listed students have an
    activated membership at this school.
    """
    school = await _get_school_or_404(db, school_id)
    eligible_ids = list(school.eligible_student_ids or [])

    activated_num = 0
    if eligible_ids:
        result = await db.execute(
            select(func.count(StudentMember.id)).where(
                StudentMember.school_attended_id == school.id,
                StudentMember.student_id.in_(eligible_ids),
                StudentMember.activated_at.isnot(None),
            )
        )
        activated_num = result.scalar() or 0

    return EligibleStudentsStatistics(
        enable_eligibility_check=school.enable_eligibility_check,
        total_num=len(eligible_ids),
        activated_num=activated_num,
    )


@router.post("/{school_id}/eligible-students", status_code=status.HTTP_204_NO_CONTENT)
async def add_eligible_student(
    school_id: int,
    body: EligibleStudentAdd,
    auth: AuthContext = Depends(require_manage_schools),
    db: AsyncSession = Depends(get_db),
):
    school = await _get_school_or_404(db, school_id)

    # JSON columns only detect reassignment, not in-place mutation
    school.eligible_student_ids = [*(school.eligible_student_ids or []), body.item]
    await db.commit()

    audit.log_eligible_students_change(school.id, "APPEND", 1)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{school_id}/eligible-students", status_code=status.HTTP_204_NO_CONTENT)
async def replace_eligible_students(
    school_id: int,
    body: EligibleStudentsReplace,
    auth: AuthContext = Depends(require_manage_schools),
    db: AsyncSession = Depends(get_db),
):
    school = await _get_school_or_404(db, school_id)

    school.eligible_student_ids = list(body.items)
    await db.commit()

    audit.log_eligible_students_change(school.id, "REPLACE", len(body.items))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/{school_id}/eligible-students/config", status_code=status.HTTP_204_NO_CONTENT
)
async def patch_eligible_student_config(
    school_id: int,
    body: EligibilityConfigUpdate,
    auth: AuthContext = Depends(require_manage_schools),
    db: AsyncSession = Depends(get_db),
):
    school = await _get_school_or_404(db, school_id)

    school.enable_eligibility_check = body.enable_eligibility_check
    await db.commit()

    logger.info(
        f"Eligibility check for school {school.id} set to {body.enable_eligibility_check}"
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
