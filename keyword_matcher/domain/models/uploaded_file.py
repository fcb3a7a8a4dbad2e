"""Uploaded spreadsheet and the lifecycle of one column-matching run."""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from keyword_matcher.infrastructure.database import Base

STATUS_UPLOADED = "uploaded"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

# States from which a column can be (re)selected
SELECTABLE_STATUSES = (STATUS_UPLOADED, STATUS_COMPLETED)


class UploadedFile(Base):
    __tablename__ = "uploaded_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(500), nullable=False)
    original_name = Column(String(500), nullable=False)
    path = Column(String(1000), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    columns = Column(JSON, nullable=False, default=list)
    row_count = Column(Integer, nullable=False, default=0)
    selected_column = Column(String(500), nullable=True)

    status = Column(String(50), nullable=False, default=STATUS_UPLOADED, index=True)
    error_message = Column(String(1000), nullable=True)
    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    processing_completed_at = Column(DateTime(timezone=True), nullable=True)
    processed_rows = Column(Integer, nullable=False, default=0)
    progress = Column(Integer, nullable=False, default=0)

    uploaded_by = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<UploadedFile {self.original_name} - {self.status}>"
