"""Transfert de voix vers un nouveau parti et élasticité du vote.

Modèle de transfert :
  - Poids d'un donneur = voix × 1 / (1 + d²), d = distance idéologique
    entre le donneur et le nouveau parti (spectre IDEOLOGY_SPECTRUM)
  - Nouveaux partis à donneurs fixés (PROPORTIONAL_DONORS) : poids = voix
  - Parts normalisées (somme = 1) après élimination des donneurs dont
    la contribution arrondie serait nulle
  - Application : chaque donneur cède voix × 0.65 × part au nouveau parti
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from colombia_elections.config import (
    DEFAULT_IDEOLOGY,
    IDEOLOGY_SPECTRUM,
    MANUAL_MODEL_TOLERANCE,
    PROPORTIONAL_DONORS,
    TRANSFER_VULNERABILITY,
    UNKNOWN_IDEOLOGY_DISTANCE,
)
from colombia_elections.data.records import normalize_party_name
from colombia_elections.engine.ranking import round_votes
from colombia_elections.errors import InvalidParameterError, TransferModelError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferModel:
    """Part des voix transférées de chaque donneur vers `new_party`."""
    new_party: str
    shares: Dict[str, float]   # donneur → part (somme = 1)


@dataclass(frozen=True)
class VoteElasticity:
    """Plancher (vote inélastique) et plafond historiques d'un parti."""
    floor: int
    ceiling: int

    @property
    def elastic_vote(self) -> int:
        return self.ceiling - self.floor


def ideological_distance(ideology_a: Optional[str], ideology_b: Optional[str]) -> int:
    """Écart de position sur le spectre ; UNKNOWN_IDEOLOGY_DISTANCE si inconnue."""
    try:
        a = IDEOLOGY_SPECTRUM.index((ideology_a or "").upper())
        b = IDEOLOGY_SPECTRUM.index((ideology_b or "").upper())
    except ValueError:
        return UNKNOWN_IDEOLOGY_DISTANCE
    return abs(a - b)


def new_parties(pre_votes: Mapping[str, int], post_votes: Mapping[str, int]) -> List[str]:
    """Partis présents après mais absents avant (candidats au transfert)."""
    return [p for p in post_votes if p not in pre_votes]


def _donor_weights(
    pre_votes: Mapping[str, int],
    new_party: str,
    ideologies: Mapping[str, str],
) -> Dict[str, float]:
    keywords = PROPORTIONAL_DONORS.get(normalize_party_name(new_party))
    if keywords is not None:
        return {
            p: float(v) for p, v in pre_votes.items()
            if v > 0 and any(kw in p for kw in keywords)
        }

    target = ideologies.get(new_party) or DEFAULT_IDEOLOGY
    weights = {}
    for donor, v in pre_votes.items():
        if v <= 0 or donor == new_party:
            continue
        d = ideological_distance(ideologies.get(donor) or DEFAULT_IDEOLOGY, target)
        weights[donor] = v / (1 + d ** 2)
    return weights


def calculate_transfer_model(
    pre_votes: Mapping[str, int],
    post_votes: Mapping[str, int],
    new_party: str,
    ideologies: Mapping[str, str],
) -> TransferModel:
    """Estime d'où viennent les voix d'un parti apparu entre deux élections.

    Args:
        pre_votes: voix par parti dans l'élection de référence « avant ».
        post_votes: voix par parti dans l'élection « après » (contient new_party).
        new_party: parti dont on modélise l'origine des voix.
        ideologies: dict parti → idéologie (valeurs de IDEOLOGY_SPECTRUM).

    Returns:
        TransferModel normalisé.

    Raises:
        TransferModelError: nouveau parti sans voix, ou aucun donneur.
    """
    new_total = post_votes.get(new_party, 0)
    if new_total <= 0:
        raise TransferModelError(
            f"Le parti « {new_party} » est absent ou sans voix dans l'élection de référence.",
            field="new_party", value=new_party,
        )

    weights = _donor_weights(pre_votes, new_party, ideologies)
    total_weight = sum(weights.values())
    if total_weight <= 0:
        raise TransferModelError(
            f"Aucun parti donneur pour « {new_party} » dans l'élection « avant ».",
            field="pre_votes", value=len(pre_votes),
        )

    kept = {
        donor: w / total_weight
        for donor, w in weights.items()
        if round_votes(w / total_weight * new_total) > 0
    }
    kept_total = sum(kept.values())
    if kept_total <= 0:
        raise TransferModelError(
            "Aucun donneur ne contribue d'au moins une voix.",
            field="new_party", value=new_party,
        )

    shares = {donor: s / kept_total for donor, s in sorted(kept.items(), key=lambda kv: (-kv[1], kv[0]))}
    logger.info("Modèle de transfert vers %s : %d donneurs", new_party, len(shares))
    return TransferModel(new_party=new_party, shares=shares)


def manual_transfer_model(new_party: str, percentages: Mapping[str, float]) -> TransferModel:
    """Modèle saisi à la main : pourcentages par donneur, somme = 100."""
    name = new_party.strip().upper()
    if not name:
        raise TransferModelError("Nom du nouveau parti vide.", field="new_party", value=new_party)
    total = sum(p for p in percentages.values() if p)
    if abs(total - 100) > MANUAL_MODEL_TOLERANCE:
        raise TransferModelError(
            f"Le modèle de transfert doit sommer à 100% (actuellement {total:.1f}%).",
            field="percentages", value=total,
        )
    return TransferModel(
        new_party=name,
        shares={donor: p / 100 for donor, p in percentages.items() if p > 0},
    )


def apply_transfer_model(
    votes: Mapping[str, int],
    model: TransferModel,
    vulnerability: float = TRANSFER_VULNERABILITY,
) -> Dict[str, int]:
    """Applique un modèle de transfert à une élection historique.

    Args:
        votes: voix par parti de l'élection de base.
        model: modèle de transfert.
        vulnerability: part maximale des voix d'un donneur qui peut partir.

    Returns:
        dict parti → voix simulées (total conservé), trié par voix décroissantes.
    """
    if not 0.0 <= vulnerability <= 1.0:
        raise InvalidParameterError(
            f"vulnerability doit être dans [0, 1] (reçu : {vulnerability}).",
            field="vulnerability", value=vulnerability,
        )

    simulated: Dict[str, int] = dict(votes)
    gained = 0
    for donor, share in model.shares.items():
        donor_votes = votes.get(donor, 0)
        if donor_votes <= 0:
            continue
        moved = min(donor_votes, round_votes(donor_votes * vulnerability * share))
        simulated[donor] = donor_votes - moved
        gained += moved

    simulated[model.new_party] = simulated.get(model.new_party, 0) + gained
    return dict(sorted(simulated.items(), key=lambda kv: (-kv[1], kv[0])))


def vote_elasticity(history: Sequence[int]) -> Optional[VoteElasticity]:
    """Plancher et plafond sur l'historique des voix d'un parti.

    Il faut au moins deux élections ; sinon None.
    """
    if len(history) < 2:
        return None
    return VoteElasticity(floor=int(min(history)), ceiling=int(max(history)))
