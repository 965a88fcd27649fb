# scrumboard/api/users.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from scrumboard.api.schemas import SprintOut
from scrumboard.core.auth import Principal, Teacher, get_current_principal
from scrumboard.core.db import get_db
from scrumboard.models import Project, Sprint, TeamMember

router = APIRouter(prefix="/user", tags=["user"])


def find_active_sprint(db: Session, user_id: int, now: datetime) -> Sprint | None:
    """The active sprint of the student's first team whose date range contains `now`."""
    membership = db.query(TeamMember).filter(TeamMember.user_id == user_id).order_by(TeamMember.id).first()
    if not membership:
        return None
    project = db.query(Project).filter(Project.team_id == membership.team_id).order_by(Project.id).first()
    if not project:
        return None

    sprints = (
        db.query(Sprint)
        .filter(Sprint.project_id == project.id, Sprint.status == "active")
        .order_by(Sprint.start_date.desc())
        .all()
    )
    return next((s for s in sprints if s.start_date <= now <= s.end_date), None)


@router.get("/active-sprint")
def get_active_sprint(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    if isinstance(principal, Teacher):
        return {"active_sprint": None}

    # Sprint dates are stored as naive UTC
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    sprint = find_active_sprint(db, principal.id, now)
    return {"active_sprint": SprintOut.model_validate(sprint) if sprint else None}
