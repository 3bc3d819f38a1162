from typing import Optional
from pydantic import BaseModel, ConfigDict

class EventFields(BaseModel):
    """Event payload as sent by clients. Every field is optional here; the
    service decides which ones are required for each operation."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None   # ISO8601 date or datetime
    type: Optional[str] = None   # category label
    time: Optional[str] = None   # time of day, free text

    def supplied(self, name: str) -> bool:
        return name in self.model_fields_set
