"""Assignment routes. Professors create and delete; everyone signed in can read."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import delete, select, update

from speacy.api.deps import CurrentUser, DbSession, ProfessorUser, get_owned_resource_or_404
from speacy.db.models import Assessment, Assignment, Profile
from speacy.schemas.assignments import AssignmentCreate, AssignmentCreated, AssignmentRead
from speacy.services.dashboards import list_assignments as query_assignments

router = APIRouter(prefix="/assignments", tags=["assignments"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[AssignmentRead])
async def list_assignments(
    current_user: CurrentUser,
    db: DbSession,
    mine: bool = False,
) -> list[AssignmentRead]:
    """
    List assignments, newest first, with the creating professor's email.

    Filters:
    - mine: only assignments created by the caller
    """
    return await query_assignments(db, created_by=current_user.id if mine else None)


@router.post("", response_model=AssignmentCreated, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    data: AssignmentCreate,
    current_user: ProfessorUser,
    db: DbSession,
) -> AssignmentCreated:
    """Create an assignment from exactly the submitted fields."""
    new_assignment = Assignment(
        created_by=current_user.id,
        **data.model_dump(),
    )
    db.add(new_assignment)
    await db.commit()
    logger.info("Professor %s created assignment %s", current_user.id, new_assignment.id)
    return AssignmentCreated(assignment_id=new_assignment.id)


@router.get("/{assignment_id}", response_model=AssignmentRead)
async def get_assignment(
    assignment_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> AssignmentRead:
    """Get one assignment; the session page builds the examiner prompt from it."""
    result = await db.execute(
        select(Assignment, Profile.email)
        .join(Profile, Profile.id == Assignment.created_by)
        .where(Assignment.id == assignment_id)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")

    assignment, email = row
    item = AssignmentRead.model_validate(assignment)
    item.professor_email = email
    return item


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: UUID,
    current_user: ProfessorUser,
    db: DbSession,
) -> None:
    """
    Delete an assignment created by the caller.

    Assessments taken against it are kept and unlinked first.
    """
    assignment = await get_owned_resource_or_404(
        db, Assignment, assignment_id, current_user.id, owner_column="created_by"
    )

    await db.execute(
        update(Assessment)
        .where(Assessment.assignment_id == assignment.id)
        .values(assignment_id=None)
    )
    await db.execute(delete(Assignment).where(Assignment.id == assignment.id))
    await db.commit()
    logger.info("Professor %s deleted assignment %s", current_user.id, assignment_id)
