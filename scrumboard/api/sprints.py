# scrumboard/api/sprints.py
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scrumboard.api.deps import get_http_client, get_issue_actions, get_sync_engine, get_token_provider
from scrumboard.api.schemas import (
    IssueAssign,
    IssueOut,
    IssueStatusIn,
    ProjectOut,
    RetrospectiveIn,
    RetrospectiveOut,
    SprintCreate,
    SprintOut,
    StandupIn,
    StandupOut,
)
from scrumboard.core.auth import Principal, Teacher, get_current_principal, require_teacher
from scrumboard.core.db import get_db
from scrumboard.models import Project, Retrospective, Sprint, Standup, Team, TeamMember
from scrumboard.services.access import ensure_team_access, get_sprint_context, is_class_teacher, is_team_member
from scrumboard.services.closed_issues import closed_by_user_since, yesterday_start
from scrumboard.services.github_token_service import TokenProvider
from scrumboard.services.issue_actions import IssueActions
from scrumboard.services.issue_sync import IssueSyncEngine

router = APIRouter(prefix="/sprints", tags=["sprints"])
log = structlog.get_logger()

SPRINT_STATUSES = ("planned", "active", "completed")


def _require_member(db: Session, team: Team, principal: Principal, message: str) -> None:
    if not is_team_member(db, team.id, principal.id):
        raise HTTPException(status_code=403, detail=message)


@router.get("", response_model=list[SprintOut])
def list_sprints(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    query = db.query(Sprint).join(Project, Sprint.project_id == Project.id).join(Team, Project.team_id == Team.id)
    if isinstance(principal, Teacher):
        sprints = [s for s, class_id in query.with_entities(Sprint, Team.class_id).all()
                   if is_class_teacher(db, class_id, principal.id)]
    else:
        sprints = (
            query.join(TeamMember, TeamMember.team_id == Team.id)
            .filter(TeamMember.user_id == principal.id)
            .all()
        )
    return sorted(sprints, key=lambda s: (s.start_date, s.id))


@router.post("", response_model=SprintOut, status_code=201)
def create_sprint(payload: SprintCreate, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    project = db.query(Project).filter(Project.id == payload.project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    team = db.query(Team).filter(Team.id == project.team_id).first()
    if not is_class_teacher(db, team.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only create sprints for your own classes")

    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Sprint name is required")
    if payload.end_date <= payload.start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    status = payload.status or "planned"
    if status not in SPRINT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid sprint status {status}")

    sprint = Sprint(
        project_id=project.id,
        name=payload.name.strip(),
        goal=payload.goal or None,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=status,
    )
    db.add(sprint)
    db.commit()
    db.refresh(sprint)
    return sprint


@router.get("/{sprint_id}")
def get_sprint(sprint_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    sprint, project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)
    return {
        **SprintOut.model_validate(sprint).model_dump(),
        "project": ProjectOut.model_validate(project),
        "team": {"id": team.id, "name": team.name, "class_id": team.class_id},
    }


@router.get("/{sprint_id}/issues")
async def get_sprint_issues(
    sprint_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    tokens: TokenProvider = Depends(get_token_provider),
    engine: IssueSyncEngine = Depends(get_sync_engine),
):
    """Sync the project's issues from GitHub, then return the board and the backlog."""
    sprint, project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)

    sync_error = None
    if project.has_repository:
        token = await tokens.get_valid_token(principal.id)
        result = await engine.sync_project_issues(project.id, project.repository_owner, project.repository_name, token)
        sync_error = result.error
        if sync_error:
            log.warning("Issue sync failed", sprint_id=sprint_id, project_id=project.id, error=sync_error)

    # Stale-but-present data is still returned when the sync failed
    all_issues = engine.store.list_for_project(project.id)
    return {
        "sprint_issues": [IssueOut.model_validate(i) for i in all_issues if i.sprint_id == sprint.id],
        "backlog_issues": [IssueOut.model_validate(i) for i in all_issues if i.sprint_id is None],
        "all_issues": [IssueOut.model_validate(i) for i in all_issues],
        "sync_error": sync_error,
    }


@router.post("/{sprint_id}/issues", response_model=IssueOut)
def assign_issue(
    sprint_id: int,
    payload: IssueAssign,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    actions: IssueActions = Depends(get_issue_actions),
):
    sprint, project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)

    issue = actions.store.get_issue(payload.issue_id)
    if not issue or issue.project_id != project.id:
        raise HTTPException(status_code=404, detail="Issue not found")
    return actions.assign_to_sprint(issue.id, sprint.id)


@router.patch("/{sprint_id}/issues", response_model=IssueOut)
def update_issue_status(
    sprint_id: int,
    payload: IssueStatusIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    engine: IssueSyncEngine = Depends(get_sync_engine),
):
    _sprint, project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)

    issue = engine.store.get_issue(payload.issue_id)
    if not issue or issue.project_id != project.id:
        raise HTTPException(status_code=404, detail="Issue not found")
    return engine.set_status(issue.id, payload.status)


@router.post("/{sprint_id}/issues/{issue_id}/close")
async def close_issue(
    sprint_id: int,
    issue_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    tokens: TokenProvider = Depends(get_token_provider),
    actions: IssueActions = Depends(get_issue_actions),
):
    _sprint, project, team = get_sprint_context(db, sprint_id)
    _require_member(db, team, principal, "Only team members can close issues")

    issue = actions.store.get_issue(issue_id)
    if not issue or issue.project_id != project.id:
        raise HTTPException(status_code=404, detail="Issue not found")

    token = await tokens.get_valid_token(principal.id) if project.has_repository else None
    result = await actions.close_issue(issue_id, project, token)
    return {"issue": IssueOut.model_validate(result.issue), "warning": result.warning}


@router.get("/{sprint_id}/closed-issues")
async def get_closed_issues(
    sprint_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    tokens: TokenProvider = Depends(get_token_provider),
    client=Depends(get_http_client),
):
    """Issues the caller closed since 00:00 UTC yesterday, to prefill a standup."""
    _sprint, project, team = get_sprint_context(db, sprint_id)
    _require_member(db, team, principal, "No access")

    if not project.has_repository:
        return {"closed_issues": [], "message": "No repository linked"}

    token = await tokens.get_valid_token(principal.id)
    if not token:
        return {"closed_issues": [], "message": "No GitHub token available"}

    username = await tokens.get_github_username(principal.id)
    if not username:
        return {"closed_issues": [], "message": "Could not fetch GitHub username"}

    since = yesterday_start(datetime.now(timezone.utc))
    records = await closed_by_user_since(
        project.repository_owner, project.repository_name, token, username, since, client=client
    )
    return {
        "closed_issues": [r.to_dict() for r in records],
        "github_username": username,
        "repository": f"{project.repository_owner}/{project.repository_name}",
    }


@router.get("/{sprint_id}/standups", response_model=list[StandupOut])
def list_standups(sprint_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    _sprint, _project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)
    return db.query(Standup).filter(Standup.sprint_id == sprint_id).order_by(Standup.date.desc()).all()


@router.post("/{sprint_id}/standups", response_model=StandupOut, status_code=201)
def create_standup(
    sprint_id: int,
    payload: StandupIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not payload.yesterday.strip() or not payload.today.strip():
        raise HTTPException(status_code=400, detail="Yesterday and today are required")

    _sprint, _project, team = get_sprint_context(db, sprint_id)
    _require_member(db, team, principal, "Only team members can add standups")

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    today_start = datetime(now.year, now.month, now.day)
    existing = (
        db.query(Standup)
        .filter(Standup.sprint_id == sprint_id, Standup.user_id == principal.id, Standup.date >= today_start)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="You already added a standup today")

    standup = Standup(
        sprint_id=sprint_id,
        user_id=principal.id,
        date=now,
        yesterday=payload.yesterday,
        today=payload.today,
        blockers=payload.blockers or None,
    )
    db.add(standup)
    db.commit()
    db.refresh(standup)
    return standup


@router.get("/{sprint_id}/retrospectives", response_model=list[RetrospectiveOut])
def list_retrospectives(
    sprint_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)
):
    _sprint, _project, team = get_sprint_context(db, sprint_id)
    ensure_team_access(db, team, principal)
    return (
        db.query(Retrospective)
        .filter(Retrospective.sprint_id == sprint_id)
        .order_by(Retrospective.created_at.desc())
        .all()
    )


@router.post("/{sprint_id}/retrospectives", response_model=RetrospectiveOut, status_code=201)
def create_retrospective(
    sprint_id: int,
    payload: RetrospectiveIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not payload.what_went_well.strip() or not payload.what_can_improve.strip():
        raise HTTPException(status_code=400, detail="What went well and what can improve are required")

    _sprint, _project, team = get_sprint_context(db, sprint_id)
    _require_member(db, team, principal, "Only team members can add retrospectives")

    existing = (
        db.query(Retrospective)
        .filter(Retrospective.sprint_id == sprint_id, Retrospective.user_id == principal.id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="You already filled in a retrospective for this sprint")

    retro = Retrospective(
        sprint_id=sprint_id,
        user_id=principal.id,
        what_went_well=payload.what_went_well,
        what_can_improve=payload.what_can_improve,
        action_items=payload.action_items or None,
    )
    db.add(retro)
    db.commit()
    db.refresh(retro)
    return retro
