# scrumboard/models/classroom.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint
from scrumboard.core.db import Base
from scrumboard.models.common import utcnow


class Classroom(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # users.class_id points back at classes
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", use_alter=True, name="fk_classes_teacher_id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ClassTeacher(Base):
    __tablename__ = "class_teachers"
    __table_args__ = (UniqueConstraint("class_id", "teacher_id", name="uq_class_teachers"),)

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class ClassRequest(Base):
    __tablename__ = "class_requests"
    __table_args__ = (UniqueConstraint("class_id", "user_id", name="uq_class_requests"),)

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, default=utcnow, nullable=False)
