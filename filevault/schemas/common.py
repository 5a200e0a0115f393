"""Schemas shared by several routers."""

from typing import List

from pydantic import BaseModel


class BatchError(BaseModel):
    """A single failure within a bulk operation."""
    file_id: str
    error: str
    code: str = ""


class BatchResult(BaseModel):
    """Result of a bulk operation. Per-item failures never abort the batch."""
    total: int
    succeeded: int
    failed: int
    errors: List[BatchError] = []
