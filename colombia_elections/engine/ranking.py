"""Classement de base ("poder electoral base") à partir des VoteRecord.

Règles :
  - Clé d'agrégation (candidat, unité politique) ; les voix sont sommées
  - Jeu de données 100% "solo por la lista" → un classement par unité
  - Sinon les votes de liste n'alimentent que les totaux par parti
  - Tri : puissance décroissante, puis nom du candidat (déterministe)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from colombia_elections.data.schemas import VoteRecord
from colombia_elections.errors import EmptyDatasetError


@dataclass(frozen=True)
class CandidateRanking:
    """Une entrée du classement."""
    candidate: str
    political_unit: str
    base_electoral_power: int


def round_votes(value: float) -> int:
    """Arrondi au vote entier le plus proche (demi vers le haut)."""
    return int(math.floor(value + 0.5))


def sort_ranking(ranking: Iterable[CandidateRanking]) -> List[CandidateRanking]:
    """Nouveau classement trié (puissance ↓, candidat ↑, unité ↑)."""
    return sorted(
        ranking,
        key=lambda c: (-c.base_electoral_power, c.candidate, c.political_unit),
    )


def calculate_base_ranking(records: Sequence[VoteRecord]) -> List[CandidateRanking]:
    """Réduit une liste de VoteRecord en classement de base.

    Args:
        records: registros d'un jeu de données.

    Returns:
        Liste de CandidateRanking triée.

    Raises:
        EmptyDatasetError: aucune ligne, ou aucune ligne avec des votes > 0.
    """
    if not records:
        raise EmptyDatasetError("Le jeu de données est vide.", field="records", value=0)
    if not any(r.votes > 0 for r in records):
        raise EmptyDatasetError(
            "Aucune ligne avec des votes positifs.", field="records", value=len(records),
        )

    party_level = all(r.is_list_only for r in records)

    totals: Dict[Tuple[str, str], int] = {}
    for r in records:
        if party_level:
            key = (r.political_unit, r.political_unit)
        elif r.is_list_only:
            continue
        else:
            key = (r.candidate, r.political_unit)
        totals[key] = totals.get(key, 0) + r.votes

    ranking = [
        CandidateRanking(candidate=cand, political_unit=unit, base_electoral_power=votes)
        for (cand, unit), votes in totals.items()
        if votes > 0
    ]
    if not ranking:
        raise EmptyDatasetError(
            "Aucun candidat avec des votes positifs.", field="records", value=len(records),
        )
    return sort_ranking(ranking)


def party_votes(records: Iterable[VoteRecord]) -> Dict[str, int]:
    """Voix brutes par unité politique (votes de liste compris)."""
    votes: Dict[str, int] = {}
    for r in records:
        votes[r.political_unit] = votes.get(r.political_unit, 0) + r.votes
    return dict(sorted(votes.items(), key=lambda kv: (-kv[1], kv[0])))


def votes_by_unit(ranking: Iterable[CandidateRanking]) -> Dict[str, int]:
    """Agrège un classement par unité politique (entrée du répartiteur D'Hondt)."""
    votes: Dict[str, int] = {}
    for c in ranking:
        votes[c.political_unit] = votes.get(c.political_unit, 0) + c.base_electoral_power
    return dict(sorted(votes.items(), key=lambda kv: (-kv[1], kv[0])))


def political_units(ranking: Iterable[CandidateRanking]) -> List[str]:
    """Unités présentes dans le classement, dans l'ordre de première apparition."""
    seen: Dict[str, None] = {}
    for c in ranking:
        seen.setdefault(c.political_unit, None)
    return list(seen)


def ranking_total(ranking: Iterable[CandidateRanking]) -> int:
    return sum(c.base_electoral_power for c in ranking)


def ranking_from_votes(votes: Mapping[str, int]) -> List[CandidateRanking]:
    """Classement au niveau parti à partir d'un dict unité → voix."""
    return sort_ranking(
        CandidateRanking(candidate=unit, political_unit=unit, base_electoral_power=v)
        for unit, v in votes.items()
    )
