"""Activity feed schemas."""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel


class ActivityResponse(BaseModel):
    id: str
    action: str
    resource_type: str
    resource_id: str
    resource_name: str
    metadata: Dict[str, Any] = {}
    message: str
    created_at: datetime


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    total: int
