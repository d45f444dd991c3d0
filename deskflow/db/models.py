from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Float, JSON, DateTime, Boolean
from sqlalchemy.sql import func
from datetime import datetime
from typing import Optional

class Base(DeclarativeBase):
    pass

class ConversationContextRecord(Base):
    __tablename__ = "conversation_context"

    conversation_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # Mirrors document["lastUpdated"] so the sweep can filter in SQL
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

class ServiceRecord(Base):
    __tablename__ = "service_record"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    table_kind: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class KnownIssueRecord(Base):
    __tablename__ = "known_issue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    keywords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    resolution: Mapped[str] = mapped_column(Text, nullable=False)
    resolution_steps: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, default=0.5)
    hit_count: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
