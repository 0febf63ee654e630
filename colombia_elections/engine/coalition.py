"""Décomposition d'une coalition en contributions estimées de ses partis.

La part de chaque membre est proportionnelle à ses voix dans une élection de
référence (où les partis se présentaient séparément).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping

from colombia_elections.config import KNOWN_COALITIONS
from colombia_elections.engine.ranking import round_votes
from colombia_elections.errors import CoalitionError


@dataclass(frozen=True)
class CoalitionShare:
    """Contribution estimée d'un parti à une coalition."""
    party: str
    estimated_votes: int
    contribution: float   # fraction (somme = 1)


def coalition_members(coalition_name: str, reference_votes: Mapping[str, int]) -> List[str]:
    """Partis membres d'une coalition, trouvés dans l'élection de référence.

    Coalitions connues : correspondance par mot-clé (KNOWN_COALITIONS).
    Sinon : partis de référence dont le nom figure dans le nom de la coalition.
    """
    upper = coalition_name.upper()
    known = next((key for key in KNOWN_COALITIONS if key in upper), None)
    if known is not None:
        keywords = KNOWN_COALITIONS[known]
        return [p for p in reference_votes if any(kw in p for kw in keywords)]
    return [p for p in reference_votes if p in coalition_name and p != coalition_name]


def coalition_breakdown(
    coalition_name: str,
    coalition_votes: int,
    reference_votes: Mapping[str, int],
) -> List[CoalitionShare]:
    """Estime la contribution de chaque membre aux voix de la coalition.

    Args:
        coalition_name: nom de la coalition (tel qu'il apparaît dans les résultats).
        coalition_votes: voix obtenues par la coalition.
        reference_votes: dict parti → voix dans l'élection de référence.

    Returns:
        Liste de CoalitionShare triée par voix estimées décroissantes.
    """
    members = coalition_members(coalition_name, reference_votes)
    if not members:
        raise CoalitionError(
            f"Aucun parti membre trouvé pour « {coalition_name} » dans l'élection de référence.",
            field="coalition_name", value=coalition_name,
        )

    total_reference = sum(reference_votes[p] for p in members)
    if total_reference <= 0:
        raise CoalitionError(
            "Les partis membres n'ont aucune voix dans l'élection de référence.",
            field="reference_votes", value=total_reference,
        )

    estimated: Dict[str, int] = {
        p: round_votes(reference_votes[p] / total_reference * coalition_votes)
        for p in members
    }
    total_estimated = sum(estimated.values())

    shares = [
        CoalitionShare(
            party=p,
            estimated_votes=v,
            contribution=v / total_estimated if total_estimated > 0 else 0.0,
        )
        for p, v in estimated.items()
    ]
    return sorted(shares, key=lambda s: (-s.estimated_votes, s.party))
