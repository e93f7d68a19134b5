"""Text and playback preferences consumed by the playback engine."""

from pydantic import BaseModel, ConfigDict, Field


class TextSettings(BaseModel):
    """Font metrics and colours for the teleprompter display."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    font_size: float = Field(default=42, gt=0, alias="fontSize")
    line_height: float = Field(default=1.6, gt=0, alias="lineHeight")
    paragraph_spacing: float = Field(default=24, ge=0, alias="paragraphSpacing")
    font_family: str = Field(default="System", alias="fontFamily")
    text_color: str = Field(default="#FFFFFF", alias="textColor")
    background_color: str = Field(default="#000000", alias="backgroundColor")

    @property
    def line_pixels(self) -> float:
        """Height of one rendered line in pixels."""
        return self.font_size * self.line_height


class PlaybackSettings(BaseModel):
    """Initial speed and mirroring flags for a teleprompter session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    speed: int = Field(default=50, ge=1, le=100)
    mirror_horizontal: bool = Field(default=False, alias="mirrorHorizontal")
    mirror_vertical: bool = Field(default=False, alias="mirrorVertical")
