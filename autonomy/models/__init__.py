"""
SQLAlchemy models mapped onto the migrated schema.

Tables are created by the SQL files under ``autonomy/migrations/versions``;
these mappings never call ``create_all``.
"""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Float, Integer, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class WorkflowRow(Base):
    __tablename__ = "workflows"

    name = Column(Text, primary_key=True)
    entrypoint = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    triggers = Column(JSON, nullable=False, default=list)
    created_at = Column(Text, server_default=func.datetime("now"))
    updated_at = Column(Text, server_default=func.datetime("now"), onupdate=func.datetime("now"))


class WorkflowRunRow(Base):
    __tablename__ = "workflow_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workflow_name = Column(Text, nullable=False, index=True)
    duration_ms = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False)


class MigrationRow(Base):
    __tablename__ = "_migrations"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    applied_at = Column(Text, server_default=func.datetime("now"))
