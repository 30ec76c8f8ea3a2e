from pydantic import BaseModel
from typing import Optional, List


class NotificationMarkRead(BaseModel):
    """Either a list of ids or all=true"""
    ids: Optional[List[str]] = None
    all: bool = False
