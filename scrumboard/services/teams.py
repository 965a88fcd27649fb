# scrumboard/services/teams.py
import structlog
from sqlalchemy.orm import Session

from scrumboard.models import GitHubIssue, Project, Retrospective, Sprint, Standup, Team, TeamMember

log = structlog.get_logger()


def delete_team(db: Session, team: Team) -> None:
    """Delete a team with its project, sprints, standups, retrospectives and mirrored issues."""
    project_ids = db.query(Project.id).filter(Project.team_id == team.id)
    sprint_ids = db.query(Sprint.id).filter(Sprint.project_id.in_(project_ids))

    # SQLite only honours ON DELETE CASCADE with the foreign_keys pragma on
    try:
        db.query(Standup).filter(Standup.sprint_id.in_(sprint_ids)).delete(synchronize_session=False)
        db.query(Retrospective).filter(Retrospective.sprint_id.in_(sprint_ids)).delete(synchronize_session=False)
        db.query(GitHubIssue).filter(GitHubIssue.project_id.in_(project_ids)).delete(synchronize_session=False)
        db.query(Sprint).filter(Sprint.project_id.in_(project_ids)).delete(synchronize_session=False)
        db.query(Project).filter(Project.team_id == team.id).delete(synchronize_session=False)
        db.query(TeamMember).filter(TeamMember.team_id == team.id).delete(synchronize_session=False)
        db.delete(team)
        db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("Team deleted", team_id=team.id, class_id=team.class_id)
