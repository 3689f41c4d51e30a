"""Normalized unit record accepted from external roster importers."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UnitRecord(BaseModel):
    """A single unit handed over by an importer.

    Importers translate their own formats into this shape; the engine never
    parses importer-specific payloads.  Flags left as ``None`` are detected
    from ``keywords`` and ``battlefield_role``.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Unit name shown on the roster")
    unit_type: str = Field(default="", description="Datasheet name")
    battlefield_role: str = Field(default="", description="Battlefield role (HQ, Troops, ...)")
    points_cost: int = Field(default=0, ge=0, description="Points cost of the unit")
    keywords: list[str] = Field(default_factory=list, description="Datasheet keywords")
    equipment: list[str] = Field(default_factory=list, description="Wargear carried")
    is_character: bool | None = Field(None, description="CHARACTER override")
    is_titanic: bool | None = Field(None, description="TITANIC override")
    is_epic_hero: bool | None = Field(None, description="EPIC HERO override")
    is_battleline: bool | None = Field(None, description="BATTLELINE override")
    is_dedicated_transport: bool | None = Field(None, description="DEDICATED TRANSPORT override")
    can_gain_xp: bool = Field(default=True, description="False for units that never gain XP")
    experience_points: int = Field(default=0, ge=0, description="Starting XP")
    notes: str = Field(default="", description="Free-form notes")

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip().upper() for part in value.split(",") if part.strip()]
        return value
