"""Project declaration file (.devmux.json) schema."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaneDeclaration(BaseModel):
    """One entry of the "panes" list."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    cmd: str | None = None
    size: float | None = Field(default=None, gt=0, lt=100)

    @field_validator("name", mode="before")
    @classmethod
    def _none_name(cls, value):
        return "" if value is None else value

    @field_validator("cmd", mode="before")
    @classmethod
    def _blank_cmd(cls, value):
        # "" means no command, same as omitting it
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Declaration(BaseModel):
    """Top-level shape of .devmux.json."""

    model_config = ConfigDict(extra="ignore")

    ensure: bool = False
    prefill: bool = False
    panes: list[PaneDeclaration] = Field(default_factory=list)
