from __future__ import annotations
import datetime as dt
from sqlalchemy import (
    String, Integer, DateTime, Text, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column
from .db import Base

UTC = dt.timezone.utc
def utcnow() -> dt.datetime:
    return dt.datetime.now(tz=UTC)

class Profile(Base):
    __tablename__ = "profiles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)  # tg user id
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="learner")  # learner | reviewer | admin
    ui_lang: Mapped[str] = mapped_column(String(8), default="ru")  # ru/en
    current_org_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class CourseInstance(Base):
    __tablename__ = "course_instances"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(Integer, index=True)
    course_id: Mapped[str] = mapped_column(String(64))  # course definition id (task catalog file name)
    org_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # started | finished | cancelled
    state: Mapped[str] = mapped_column(String(16), default="started")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class Lesson(Base):
    __tablename__ = "lessons"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_ref_id: Mapped[int] = mapped_column(Integer, index=True)
    profile_id: Mapped[int] = mapped_column(Integer, index=True)
    lesson_num: Mapped[int] = mapped_column(Integer)
    org_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    course_no: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # NULL (unset) | in_progress | done | rejected | corrected | accepted
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # NULL | reviewer
    locked_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    answers_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON list of answer objects

    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("course_ref_id", "profile_id", "lesson_num", name="uq_lesson_key"),
        Index("ix_lessons_status", "course_ref_id", "status"),
    )

class Preference(Base):
    __tablename__ = "preferences"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(Integer, index=True)
    key: Mapped[str] = mapped_column(String(64))
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    __table_args__ = (UniqueConstraint("chat_id", "key", name="uq_pref_chat_key"),)
