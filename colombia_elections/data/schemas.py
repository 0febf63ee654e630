"""Modèles Pydantic pour la validation des données électorales."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from colombia_elections.config import LIST_ONLY_SENTINEL


class VoteRecord(BaseModel):
    """Un décompte : unité politique, candidat (ou vote de liste), voix."""
    model_config = ConfigDict(frozen=True)

    political_unit: str = Field(min_length=1)
    candidate: str = LIST_ONLY_SENTINEL
    votes: int = Field(ge=0)
    is_head_of_list: bool = False

    @field_validator("political_unit", "candidate")
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("nom vide")
        return v

    @property
    def is_list_only(self) -> bool:
        return self.candidate.upper() == LIST_ONLY_SENTINEL


class InvalidVoteCounts(BaseModel):
    """Votes blancs et nuls écartés à l'ingestion."""
    blank_votes: int = Field(ge=0, default=0)
    null_votes: int = Field(ge=0, default=0)

    @property
    def total(self) -> int:
        return self.blank_votes + self.null_votes
