"""
Pydantic model for the completion sentinel written into a dataset directory.

The sentinel is the only evidence the presence check trusts: it is written
after extraction succeeds, so a directory holding stray files from an
interrupted run is never mistaken for a complete dataset.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class MaterializationRecord(BaseModel):
    """Describes a fully extracted dataset."""

    source_url: str
    archive_name: str
    content_length: Optional[int] = None
    entries: List[str]
    completed_at: datetime
