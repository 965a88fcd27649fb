# scrumboard/api/teacher.py
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from scrumboard.api.schemas import StandupOut, UserSummary
from scrumboard.core.auth import Teacher, require_teacher
from scrumboard.core.db import get_db
from scrumboard.models import Classroom, ClassTeacher, Project, Sprint, Standup, Team, User

router = APIRouter(prefix="/teacher", tags=["teacher"])


def _taught_by(db: Session, teacher_id: int):
    linked = db.query(ClassTeacher.class_id).filter(ClassTeacher.teacher_id == teacher_id)
    return (Classroom.teacher_id == teacher_id) | Classroom.id.in_(linked)


@router.get("/standups")
def teacher_standups(
    class_id: int | None = None,
    team_id: int | None = None,
    project_id: int | None = None,
    sprint_id: int | None = None,
    user_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    teacher: Teacher = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """Standups across the teacher's classes with their context, plus the values the filters can take."""
    sprints = (
        db.query(Sprint, Project, Team, Classroom)
        .join(Project, Sprint.project_id == Project.id)
        .join(Team, Project.team_id == Team.id)
        .join(Classroom, Team.class_id == Classroom.id)
        .filter(_taught_by(db, teacher.id))
    )
    if class_id is not None:
        sprints = sprints.filter(Classroom.id == class_id)
    if team_id is not None:
        sprints = sprints.filter(Team.id == team_id)
    if project_id is not None:
        sprints = sprints.filter(Project.id == project_id)
    if sprint_id is not None:
        sprints = sprints.filter(Sprint.id == sprint_id)
    rows = sprints.order_by(Classroom.name, Team.name, Sprint.start_date).all()
    context = {sprint.id: (sprint, project, team, cls) for sprint, project, team, cls in rows}

    standups = []
    if context:
        query = (
            db.query(Standup, User)
            .join(User, Standup.user_id == User.id)
            .filter(Standup.sprint_id.in_(list(context)))
        )
        if user_id is not None:
            query = query.filter(Standup.user_id == user_id)
        if start_date is not None:
            query = query.filter(Standup.date >= start_date)
        if end_date is not None:
            query = query.filter(Standup.date <= end_date)
        for standup, user in query.order_by(Standup.date.desc()).all():
            sprint, project, team, cls = context[standup.sprint_id]
            standups.append(
                {
                    **StandupOut.model_validate(standup).model_dump(),
                    "user": UserSummary.model_validate(user),
                    "context": {
                        "class": {"id": cls.id, "name": cls.name},
                        "team": {"id": team.id, "name": team.name},
                        "project": {"id": project.id, "name": project.name},
                        "sprint": {"id": sprint.id, "name": sprint.name,
                                   "start_date": sprint.start_date, "end_date": sprint.end_date},
                    },
                }
            )

    classes, teams, projects = {}, {}, {}
    for sprint, project, team, cls in rows:
        classes.setdefault(cls.id, {"id": cls.id, "name": cls.name})
        teams.setdefault(team.id, {"id": team.id, "name": team.name, "class_id": cls.id})
        projects.setdefault(project.id, {"id": project.id, "name": project.name, "team_id": team.id})
    sprint_filters = [
        {"id": sprint.id, "name": sprint.name, "project_id": project.id, "team_id": team.id, "class_id": cls.id}
        for sprint, project, team, cls in rows
    ]

    return {
        "standups": standups,
        "count": len(standups),
        "filters": {
            "classes": list(classes.values()),
            "teams": list(teams.values()),
            "projects": list(projects.values()),
            "sprints": sprint_filters,
        },
    }
