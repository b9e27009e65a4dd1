from sqlmodel import Field

from .base import Timestamped


class GrievanceCommunication(Timestamped, table=True):
    """A message on a grievance thread. Internal notes are visible to admins only."""

    id: str = Field(primary_key=True, index=True)
    grievance_id: str = Field(foreign_key="grievance.id", index=True)
    author_id: str = Field(foreign_key="user.id", index=True)
    message: str = Field(max_length=2000)
    is_internal: bool = False
