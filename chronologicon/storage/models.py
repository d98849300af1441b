"""
SQLModel schema for persisted historical events.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class EventRecord(SQLModel, table=True):
    """
    One historical event row. Timestamps are written as UTC.
    """

    __tablename__ = "historical_events"

    event_id: str = Field(primary_key=True, description="Lower-case UUID string")
    name: str = Field()
    name_key: str = Field(index=True, description="casefold() of name, used for filtering and sorting")
    description: str = Field(default="")
    start_date: datetime = Field(index=True)
    end_date: datetime = Field(index=True)
    duration_minutes: int = Field(index=True, description="floor((end - start) in minutes)")
    parent_id: Optional[str] = Field(default=None, index=True, description="Parent event id, None for roots")
    research_value: int = Field(default=0)
    event_metadata: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field()
    updated_at: datetime = Field()
