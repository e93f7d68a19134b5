"""Script entities read by the teleprompter."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Script(BaseModel):
    """A script to be displayed on the teleprompter.

    The relay core never mutates scripts; they are supplied by the script
    store and read once when a teleprompter session starts.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Unique identifier for the script")
    title: str = Field(min_length=1, max_length=200, description="Title shown on the remote")
    content: str = Field(default="", description="Script text, paragraphs separated by blank lines")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")
    category: Optional[str] = Field(None, description="Optional category id")
    is_favorite: bool = Field(default=False, alias="isFavorite")

    @property
    def paragraphs(self) -> list[str]:
        return [p for p in self.content.split("\n\n") if p.strip()]
