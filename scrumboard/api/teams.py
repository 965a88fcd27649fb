# scrumboard/api/teams.py
import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scrumboard.api.schemas import ProjectOut, RepositoryLinkIn, TeamCreate, TeamMemberIn, TeamUpdate, UserSummary
from scrumboard.core.auth import Principal, Teacher, get_current_principal, require_teacher
from scrumboard.core.db import get_db
from scrumboard.models import Classroom, Project, Team, TeamMember, User
from scrumboard.services import teams as team_service
from scrumboard.services.access import ensure_team_access, is_class_teacher, is_team_member

router = APIRouter(prefix="/teams", tags=["teams"])
log = structlog.get_logger()


def _team_out(db: Session, team: Team) -> dict:
    project = db.query(Project).filter(Project.team_id == team.id).first()
    members = db.query(TeamMember).filter(TeamMember.team_id == team.id).all()
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "class_id": team.class_id,
        "members": [{"user_id": m.user_id, "role": m.role} for m in members],
        "project": ProjectOut.model_validate(project) if project else None,
    }


def _get_team(db: Session, team_id: int) -> Team:
    team = db.query(Team).filter(Team.id == team_id).first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.get("")
def list_teams(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    if isinstance(principal, Teacher):
        teams = [t for t in db.query(Team).order_by(Team.created_at.desc()).all()
                 if is_class_teacher(db, t.class_id, principal.id)]
    else:
        teams = (
            db.query(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .filter(TeamMember.user_id == principal.id)
            .order_by(Team.created_at.desc())
            .all()
        )
    return [_team_out(db, t) for t in teams]


@router.post("", status_code=201)
def create_team(payload: TeamCreate, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    name = payload.name.strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Team name is invalid")

    if not db.query(Classroom).filter(Classroom.id == payload.class_id).first():
        raise HTTPException(status_code=404, detail="Class not found")
    if not is_class_teacher(db, payload.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only create teams for your own classes")

    existing = db.query(Team).filter(Team.class_id == payload.class_id, Team.name == name).first()
    if existing:
        raise HTTPException(status_code=400, detail="A team with this name already exists in this class")

    # Every team gets exactly one project
    team = Team(name=name, description=payload.description, class_id=payload.class_id)
    db.add(team)
    db.flush()
    db.add(Project(team_id=team.id, name=f"{name} Project"))
    db.commit()
    db.refresh(team)
    log.info("Team created", team_id=team.id, class_id=team.class_id)
    return _team_out(db, team)


@router.get("/{team_id}")
def get_team(team_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    team = _get_team(db, team_id)
    ensure_team_access(db, team, principal)

    cls = db.query(Classroom).filter(Classroom.id == team.class_id).first()
    members = (
        db.query(TeamMember, User)
        .join(User, TeamMember.user_id == User.id)
        .filter(TeamMember.team_id == team.id)
        .order_by(User.name)
        .all()
    )
    return {
        **_team_out(db, team),
        "class": {"id": cls.id, "name": cls.name},
        "members": [
            {"user_id": user.id, "role": member.role, "user": UserSummary.model_validate(user)}
            for member, user in members
        ],
    }


@router.patch("/{team_id}")
def rename_team(
    team_id: int, payload: TeamUpdate, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)
):
    name = payload.name.strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Team name is invalid")

    team = _get_team(db, team_id)
    if not is_class_teacher(db, team.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only update teams from your own classes")

    clash = db.query(Team).filter(Team.class_id == team.class_id, Team.name == name, Team.id != team.id).first()
    if clash:
        raise HTTPException(status_code=400, detail="A team with this name already exists in this class")

    team.name = name
    db.commit()
    db.refresh(team)
    return _team_out(db, team)


@router.delete("/{team_id}")
def delete_team(team_id: int, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    team = _get_team(db, team_id)
    if not is_class_teacher(db, team.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only delete teams from your own classes")

    team_service.delete_team(db, team)
    return {"message": "Team deleted"}


@router.post("/{team_id}/members", status_code=201)
def add_member(
    team_id: int, payload: TeamMemberIn, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)
):
    team = _get_team(db, team_id)
    if not is_class_teacher(db, team.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only manage teams of your own classes")

    student = db.query(User).filter(User.id == payload.user_id).first()
    if not student:
        raise HTTPException(status_code=404, detail="User not found")
    if student.class_id != team.class_id:
        raise HTTPException(status_code=400, detail="Student is not in this class")
    if is_team_member(db, team.id, student.id):
        raise HTTPException(status_code=400, detail="Student is already a member of this team")

    member = TeamMember(team_id=team.id, user_id=student.id, role=payload.role)
    db.add(member)
    db.commit()
    return {"team_id": team.id, "user_id": student.id, "role": member.role}


@router.delete("/{team_id}/members/{user_id}")
def remove_member(team_id: int, user_id: int, teacher: Teacher = Depends(require_teacher), db: Session = Depends(get_db)):
    team = _get_team(db, team_id)
    if not is_class_teacher(db, team.class_id, teacher.id):
        raise HTTPException(status_code=403, detail="You can only manage teams of your own classes")

    deleted = db.query(TeamMember).filter(TeamMember.team_id == team.id, TeamMember.user_id == user_id).delete()
    db.commit()
    if not deleted:
        raise HTTPException(status_code=404, detail="Member not found")
    return {"ok": True}


@router.patch("/{team_id}/repository", response_model=ProjectOut)
def link_repository(
    team_id: int,
    payload: RepositoryLinkIn,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not (payload.repository_url and payload.repository_owner and payload.repository_name):
        raise HTTPException(status_code=400, detail="Repository URL, owner and name are required")

    team = _get_team(db, team_id)
    if not is_team_member(db, team.id, principal.id):
        raise HTTPException(status_code=403, detail="Only team members can link the repository")

    project = db.query(Project).filter(Project.team_id == team.id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    project.repository_url = payload.repository_url
    project.repository_owner = payload.repository_owner
    project.repository_name = payload.repository_name
    db.commit()
    db.refresh(project)
    log.info("Repository linked", team_id=team.id, project_id=project.id,
             repository=f"{project.repository_owner}/{project.repository_name}")
    return project
