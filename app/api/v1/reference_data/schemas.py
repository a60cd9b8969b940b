"""Reference list items used by class forms and filters."""

from typing import Optional, Union

from pydantic import BaseModel, Field


class ReferenceItem(BaseModel):
    """Generic {id, name} pair (clients, agents, supervisors, learners, SETA bodies, class types)."""

    id: Union[int, str] = Field(..., description="Identifier stored on the class record")
    name: str = Field(..., description="Display name")


class SiteItem(BaseModel):
    id: str = Field(..., description="Site identifier, e.g. 11_1")
    client_id: int
    name: str
    address: Optional[str] = None


class PublicHoliday(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    name: str
