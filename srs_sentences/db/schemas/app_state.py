from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel


class AppStateRecord(SQLModel, table=True):
    __tablename__ = "app_state"

    id: Optional[int] = Field(default=None, primary_key=True)
    version: int = Field(default=3)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False, default=dict))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
