# scrumboard/models/team.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint
from scrumboard.core.db import Base
from scrumboard.models.common import utcnow


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_members"),)

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False, default="member")   # "member", "scrum_master", "product_owner"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)

    # Linked upstream repository, all NULL for local-only projects
    repository_url = Column(String, nullable=True)
    repository_owner = Column(String, nullable=True)
    repository_name = Column(String, nullable=True)

    @property
    def has_repository(self) -> bool:
        return bool(self.repository_owner and self.repository_name)
