from typing import Dict

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Authenticated caller, built from the access token claims.

    id is recorded as the author of class notes and in mutation logs.
    """

    id: str
    role: str
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
