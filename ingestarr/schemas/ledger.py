# ingestarr/schemas/ledger.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportRecord(BaseModel):
    """One ledger entry: an import attempted or completed for a destination name."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    destination_filename: str = Field(alias="DestinationFilename", min_length=1)
    source_filename: str = Field(alias="SourceFilename")
    prefix: str = Field(default="", alias="Prefix")
    original_length: int = Field(default=0, alias="OriginalLength", ge=0)
    processing_datestamp: Optional[datetime] = Field(default=None, alias="ProcessingDatestamp")

    @property
    def key(self) -> str:
        return ledger_key(self.destination_filename)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return self.destination_filename


def ledger_key(name: str) -> str:
    """Case-insensitive identity of a destination file name."""
    return name.casefold()
