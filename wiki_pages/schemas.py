from datetime import datetime

from pydantic import BaseModel


class RevisionContent(BaseModel):
    revision_id: int
    content: str
    modified_at: datetime
    modified_by: str

    class Config:
        from_attributes = True


class HistoryRecord(BaseModel):
    revision_id: int
    created_at: datetime
    created_by: str

    class Config:
        from_attributes = True


class DocumentSummary(BaseModel):
    name: str
    last_modified: datetime
    current_revision_id: int | None

    class Config:
        from_attributes = True
