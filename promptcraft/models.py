# promptcraft/models.py
import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from promptcraft.db import Base


def utcnow() -> datetime.datetime:
    # naive UTC; SQLite drops tzinfo anyway
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class EnhancementRecord(Base):
    __tablename__ = "prompt_enhancements"

    id = Column(String(36), primary_key=True, index=True)
    original_prompt = Column(Text, nullable=False)
    analysis_json = Column(Text, nullable=True)
    questions_json = Column(Text, nullable=True)
    answers_json = Column(Text, nullable=True)
    enhanced_prompt = Column(Text, nullable=True)
    improvement_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    saved = Column(Boolean, default=False, nullable=False, index=True)
    title = Column(Text, nullable=True)
    style = Column(String(20), default="detailed", nullable=True)
