# scrumboard/models/sprint.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint
from scrumboard.core.db import Base
from scrumboard.models.common import utcnow


class Sprint(Base):
    __tablename__ = "sprints"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    goal = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="planned")  # planned, active, completed


class Standup(Base):
    __tablename__ = "standups"

    id = Column(Integer, primary_key=True, index=True)
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime, default=utcnow, nullable=False)
    yesterday = Column(Text, nullable=False)
    today = Column(Text, nullable=False)
    blockers = Column(Text, nullable=True)


class Retrospective(Base):
    __tablename__ = "retrospectives"
    __table_args__ = (UniqueConstraint("sprint_id", "user_id", name="uq_retrospectives_sprint_user"),)

    id = Column(Integer, primary_key=True, index=True)
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    what_went_well = Column(Text, nullable=False)
    what_can_improve = Column(Text, nullable=False)
    action_items = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
