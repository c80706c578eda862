from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .rounds import QuestionType


class CatalogRound(BaseModel):
    """A round's position inside one domain's sequence."""

    round_id: str
    sequence: int = 0
    name: str = ""
    type: QuestionType | None = None

    model_config = ConfigDict(extra="forbid")


class DomainDefinition(BaseModel):
    """Reference data for one work domain."""

    domain_id: str
    name: str
    is_active: bool = True
    rounds: list[CatalogRound] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
