# scrumboard/services/access.py
"""Ownership and membership predicates used by the route handlers."""
from sqlalchemy.orm import Session

from scrumboard.core.auth import Principal, Teacher
from scrumboard.core.errors import NotFoundError, PermissionDeniedError
from scrumboard.models import ClassTeacher, Classroom, Project, Sprint, Team, TeamMember, User


def is_team_member(db: Session, team_id: int, user_id: int) -> bool:
    return (
        db.query(TeamMember).filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id).first()
        is not None
    )


def is_class_teacher(db: Session, class_id: int, user_id: int) -> bool:
    link = db.query(ClassTeacher).filter(ClassTeacher.class_id == class_id, ClassTeacher.teacher_id == user_id).first()
    if link:
        return True
    cls = db.query(Classroom).filter(Classroom.id == class_id).first()
    return bool(cls and cls.teacher_id == user_id)


def get_sprint_context(db: Session, sprint_id: int) -> tuple[Sprint, Project, Team]:
    sprint = db.query(Sprint).filter(Sprint.id == sprint_id).first()
    if not sprint:
        raise NotFoundError("Sprint not found")
    project = db.query(Project).filter(Project.id == sprint.project_id).first()
    team = db.query(Team).filter(Team.id == project.team_id).first()
    return sprint, project, team


def ensure_team_access(db: Session, team: Team, principal: Principal) -> None:
    """Team members, and teachers of the team's class, may see the team's work."""
    if is_team_member(db, team.id, principal.id):
        return
    if isinstance(principal, Teacher) and is_class_teacher(db, team.class_id, principal.id):
        return
    raise PermissionDeniedError("No access to this team")


def ensure_class_access(db: Session, class_id: int, principal: Principal) -> Classroom:
    cls = db.query(Classroom).filter(Classroom.id == class_id).first()
    if not cls:
        raise NotFoundError("Class not found")
    if isinstance(principal, Teacher):
        if not is_class_teacher(db, class_id, principal.id):
            raise PermissionDeniedError("No access to this class")
    else:
        user = db.query(User).filter(User.id == principal.id).first()
        if not user or user.class_id != class_id:
            raise PermissionDeniedError("No access to this class")
    return cls
