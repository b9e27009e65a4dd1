from typing import Optional

from sqlmodel import Field

from .base import Timestamped


class StageHistory(Timestamped, table=True):
    """One executed transition; rows are only ever appended."""

    id: str = Field(primary_key=True, index=True)
    workflow: str = Field(index=True)
    record_id: str = Field(index=True)

    transition: str
    from_stage: str
    to_stage: str

    actor_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    comment: Optional[str] = None
