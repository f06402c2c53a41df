from typing import Optional

from pydantic import BaseModel


class RotateResponse(BaseModel):
    message: str
    stage: Optional[str] = None
    """Pipeline stage that failed; ``None`` when the run succeeded."""
