"""Dashboard data for students and professors."""

from fastapi import APIRouter

from speacy.api.deps import CurrentUser, DbSession, ProfessorUser
from speacy.schemas.assessments import AssessmentSummary
from speacy.schemas.dashboards import ProfessorDashboard, StudentDashboard, StudentDetail
from speacy.services.dashboards import class_stats, list_assessments, list_assignments, score_stats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/student", response_model=StudentDashboard)
async def student_dashboard(
    current_user: CurrentUser,
    db: DbSession,
) -> StudentDashboard:
    """Available assignments, the caller's assessments and their stats."""
    assignments = await list_assignments(db)
    assessments = await list_assessments(db, user_id=current_user.id)
    return StudentDashboard(
        email=current_user.email,
        available_assignments=assignments,
        assessments=[AssessmentSummary.model_validate(a) for a in assessments],
        stats=score_stats(assessments),
    )


@router.get("/professor", response_model=ProfessorDashboard)
async def professor_dashboard(
    current_user: ProfessorUser,
    db: DbSession,
) -> ProfessorDashboard:
    """The professor's own assignments and class-wide stats."""
    assignments = await list_assignments(db, created_by=current_user.id)
    assessments = await list_assessments(db)
    return ProfessorDashboard(
        email=current_user.email,
        assignments=assignments,
        class_stats=class_stats(assessments),
    )


@router.get("/professor/students/{email}", response_model=StudentDetail)
async def student_detail(
    email: str,
    current_user: ProfessorUser,
    db: DbSession,
) -> StudentDetail:
    """One student's assessment history, looked up by email."""
    assessments = await list_assessments(db, student_email=email)
    return StudentDetail(
        student_email=email,
        assessments=[AssessmentSummary.model_validate(a) for a in assessments],
        stats=score_stats(assessments),
    )
