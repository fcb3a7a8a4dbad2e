"""Pydantic schemas for uploaded files."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class SheetInfo(BaseModel):
    columns: list[str]
    row_count: int
    sheet_names: list[str] = []
    current_sheet: Optional[str] = None


class CellValue(BaseModel):
    value: str
    row_index: int


class FileRead(BaseModel):
    id: int
    original_name: str
    size: int
    columns: list[str]
    row_count: int
    selected_column: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    progress: int = 0
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FileFilter(BaseModel):
    status: Optional[str] = None
    page: int = 1
    page_size: int = 10


class ColumnSelection(BaseModel):
    selected_column: str


class FileStatusRead(BaseModel):
    status: str
    progress: int
    processed_rows: int
    row_count: int
    processed_count: int
    total_count: int
    error_message: Optional[str] = None
