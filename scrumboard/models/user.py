# scrumboard/models/user.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from scrumboard.core.db import Base
from scrumboard.models.common import utcnow

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    github_id = Column(Integer, unique=True, index=True, nullable=True)
    github_login = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    image = Column(String, nullable=True)
    role = Column(String, nullable=False, default=ROLE_STUDENT)  # "student" | "teacher"

    # Students belong to at most one class
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
