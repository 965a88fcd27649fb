# scrumboard/api/classes.py
import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scrumboard.api.deps import get_issue_actions, get_sync_engine, get_token_provider
from scrumboard.api.schemas import (
    ClassCreate,
    ClassOut,
    ClassUpdate,
    IssueCreate,
    IssueOut,
    IssueUpdate,
    JoinRequestIn,
    RequestActionIn,
    UserSummary,
)
from scrumboard.core.auth import Principal, Teacher, get_current_principal, require_teacher
from scrumboard.core.db import get_db
from scrumboard.models import ClassRequest, Classroom, ClassTeacher, Project, Sprint, Team, TeamMember, User
from scrumboard.services import classes as class_service
from scrumboard.services.access import ensure_class_access, is_class_teacher
from scrumboard.services.github_token_service import TokenProvider
from scrumboard.services.issue_actions import IssueActions, issue_assignee_logins
from scrumboard.services.issue_sync import IssueSyncEngine

router = APIRouter(prefix="/classes", tags=["classes"])
log = structlog.get_logger()


def _class_project_ids(db: Session, class_id: int) -> list[int]:
    rows = (
        db.query(Project.id)
        .join(Team, Project.team_id == Team.id)
        .filter(Team.class_id == class_id)
        .order_by(Project.id)
        .all()
    )
    return [r[0] for r in rows]


@router.get("", response_model=list[ClassOut])
def list_classes(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    if isinstance(principal, Teacher):
        linked = db.query(ClassTeacher.class_id).filter(ClassTeacher.teacher_id == principal.id)
        return (
            db.query(Classroom)
            .filter((Classroom.teacher_id == principal.id) | Classroom.id.in_(linked))
            .order_by(Classroom.created_at.desc())
            .all()
        )

    user = db.query(User).filter(User.id == principal.id).first()
    if not user or not user.class_id:
        return []
    return db.query(Classroom).filter(Classroom.id == user.class_id).all()


@router.get("/available", response_model=list[ClassOut])
def list_available_classes(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return db.query(Classroom).order_by(Classroom.name).all()


@router.post("", response_model=ClassOut, status_code=201)
def create_class(payload: ClassCreate, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    return class_service.create_class(db, teacher.id, payload.name, payload.description)


@router.get("/{class_id}")
def get_class(class_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    """The class with its students and teams. Teachers also see pending join requests."""
    cls = ensure_class_access(db, class_id, principal)

    students = db.query(User).filter(User.class_id == class_id).order_by(User.name).all()
    teams = db.query(Team).filter(Team.class_id == class_id).order_by(Team.name).all()
    requests = []
    if isinstance(principal, Teacher):
        rows = (
            db.query(ClassRequest, User)
            .join(User, ClassRequest.user_id == User.id)
            .filter(ClassRequest.class_id == class_id, ClassRequest.status == "pending")
            .order_by(ClassRequest.created_at)
            .all()
        )
        requests = [
            {"id": req.id, "status": req.status, "created_at": req.created_at, "user": UserSummary.model_validate(user)}
            for req, user in rows
        ]

    return {
        **ClassOut.model_validate(cls).model_dump(),
        "students": [UserSummary.model_validate(s) for s in students],
        "teams": [{"id": t.id, "name": t.name} for t in teams],
        "requests": requests,
    }


@router.patch("/{class_id}", response_model=ClassOut)
def update_class(
    class_id: int, payload: ClassUpdate, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)
):
    cls = db.query(Classroom).filter(Classroom.id == class_id).first()
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found")
    if not is_class_teacher(db, class_id, teacher.id):
        raise HTTPException(status_code=403, detail="Only a teacher of this class can edit it")
    return class_service.update_class(db, cls, payload.name, payload.description)


@router.delete("/{class_id}/students/{student_id}")
def remove_student(
    class_id: int, student_id: int, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)
):
    if not db.query(Classroom).filter(Classroom.id == class_id).first():
        raise HTTPException(status_code=404, detail="Class not found")
    if not is_class_teacher(db, class_id, teacher.id):
        raise HTTPException(status_code=403, detail="Only a teacher of this class can remove students")

    student = class_service.remove_student(db, class_id, student_id)
    return {"message": "Student removed from class", "student": UserSummary.model_validate(student)}


@router.post("/{class_id}/link-teacher")
def link_teacher(class_id: int, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    link, created = class_service.link_teacher(db, class_id, teacher.id)
    return {
        "message": "Linked as teacher" if created else "Already linked",
        "class_id": link.class_id,
        "teacher_id": link.teacher_id,
    }


@router.post("/request")
def request_to_join(payload: JoinRequestIn, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    req = class_service.request_to_join(db, principal.id, payload.class_id)
    return {"id": req.id, "class_id": req.class_id, "user_id": req.user_id, "status": req.status}


@router.patch("/{class_id}/requests/{request_id}")
def resolve_request(
    class_id: int,
    request_id: int,
    payload: RequestActionIn,
    teacher: Teacher = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    if not db.query(Classroom).filter(Classroom.id == class_id).first():
        raise HTTPException(status_code=404, detail="Class not found")
    if not is_class_teacher(db, class_id, teacher.id):
        raise HTTPException(status_code=403, detail="Only a teacher of this class can manage requests")

    action = class_service.resolve_request(db, class_id, request_id, payload.action)
    return {"message": "Student accepted" if action == "accept" else "Student rejected"}


@router.get("/{class_id}/backlog")
def get_backlog(
    class_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    engine: IssueSyncEngine = Depends(get_sync_engine),
):
    ensure_class_access(db, class_id, principal)
    issues = engine.list_backlog(_class_project_ids(db, class_id))
    return {"issues": [IssueOut.model_validate(i) for i in issues]}


@router.post("/{class_id}/backlog", status_code=201)
async def create_backlog_issue(
    class_id: int,
    payload: IssueCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    tokens: TokenProvider = Depends(get_token_provider),
    actions: IssueActions = Depends(get_issue_actions),
):
    ensure_class_access(db, class_id, principal)
    project_ids = _class_project_ids(db, class_id)
    project_id = payload.project_id or (project_ids[0] if project_ids else None)
    if project_id is None or project_id not in project_ids:
        raise HTTPException(status_code=400, detail="No project found for this class.")

    project = db.query(Project).filter(Project.id == project_id).first()
    token = await tokens.get_valid_token(principal.id) if project.has_repository else None
    result = await actions.create_issue(project, payload.title, payload.body, token)
    return {"issue": IssueOut.model_validate(result.issue), "warning": result.warning}


def _backlog_issue(db: Session, actions: IssueActions, class_id: int, issue_id: int):
    issue = actions.store.get_issue(issue_id)
    if not issue or issue.project_id not in _class_project_ids(db, class_id):
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


@router.patch("/{class_id}/backlog/{issue_id}", response_model=IssueOut)
def update_backlog_issue(
    class_id: int,
    issue_id: int,
    payload: IssueUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    actions: IssueActions = Depends(get_issue_actions),
):
    ensure_class_access(db, class_id, principal)
    issue = _backlog_issue(db, actions, class_id, issue_id)
    if issue.sprint_id is not None:
        raise HTTPException(status_code=400, detail="Only backlog issues can be edited here")
    return actions.update_issue(issue.id, title=payload.title, body=payload.body)


@router.delete("/{class_id}/backlog/{issue_id}")
def delete_backlog_issue(
    class_id: int,
    issue_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    actions: IssueActions = Depends(get_issue_actions),
):
    ensure_class_access(db, class_id, principal)
    issue = _backlog_issue(db, actions, class_id, issue_id)
    actions.delete_issue(issue.id)
    return {"success": True}


@router.get("/{class_id}/students-issues")
async def students_issues(
    class_id: int,
    sprint_id: int | None = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    tokens: TokenProvider = Depends(get_token_provider),
    engine: IssueSyncEngine = Depends(get_sync_engine),
):
    """Every student of the class with the issues of their team's current sprint."""
    ensure_class_access(db, class_id, principal)

    projects = (
        db.query(Project).join(Team, Project.team_id == Team.id).filter(Team.class_id == class_id).all()
    )
    linked = [p for p in projects if p.has_repository]
    sync_errors = {}
    if linked:
        token = await tokens.get_valid_token(principal.id)
        for project in linked:
            result = await engine.sync_project_issues(project.id, project.repository_owner, project.repository_name, token)
            if result.error:
                sync_errors[project.id] = result.error
                log.warning("Issue sync failed", class_id=class_id, project_id=project.id, error=result.error)

    students = db.query(User).filter(User.class_id == class_id).order_by(User.name).all()
    out = []
    for student in students:
        memberships = (
            db.query(TeamMember, Team)
            .join(Team, TeamMember.team_id == Team.id)
            .filter(TeamMember.user_id == student.id, Team.class_id == class_id)
            .all()
        )
        sprints, issues = [], []
        for membership, team in memberships:
            for project in (p for p in projects if p.team_id == team.id):
                sprint_query = db.query(Sprint).filter(Sprint.project_id == project.id)
                if sprint_id is not None:
                    sprint_query = sprint_query.filter(Sprint.id == sprint_id)
                else:
                    sprint_query = sprint_query.filter(Sprint.status == "active")
                for sprint in sprint_query.all():
                    sprints.append(
                        {"id": sprint.id, "name": sprint.name, "status": sprint.status,
                         "team_name": team.name, "project_name": project.name}
                    )
                    for issue in engine.list_for_sprint(sprint.id):
                        logins = [login.lower() for login in issue_assignee_logins(issue)]
                        issues.append(
                            {
                                **IssueOut.model_validate(issue).model_dump(),
                                "sprint_name": sprint.name,
                                "team_name": team.name,
                                "project_name": project.name,
                                "is_assigned_to_student": bool(student.github_login)
                                and student.github_login.lower() in logins,
                            }
                        )
        out.append(
            {
                "id": student.id,
                "name": student.name,
                "email": student.email,
                "image": student.image,
                "github_login": student.github_login,
                "sprints": sprints,
                "issues": issues,
                "team_memberships": [
                    {"team_id": team.id, "team_name": team.name, "role": membership.role}
                    for membership, team in memberships
                ],
            }
        )

    return {"students": out, "sync_errors": sync_errors}
