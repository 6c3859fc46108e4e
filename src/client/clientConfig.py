from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientConfig(BaseModel):
    """
    Everything a view needs to talk to the API, passed in explicitly.
    Views hold no module-level state, so tests build one per case.
    """
    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:5001/api/v1"
    timeout: float = Field(10.0, gt=0)
    token: Optional[str] = None

    # Payment-return polling
    poll_interval: float = Field(1.2, gt=0)
    poll_ceiling: float = Field(8.0, gt=0)
