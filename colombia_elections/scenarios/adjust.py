"""Ajustements de scénario appliqués à un classement.

Ordre fixe (reproductible) :
  1. Fragmentation d'une unité entre N candidats (division entière,
     le reste va au premier : conservation exacte des voix)
  2. Pénalité de gouvernement : un tirage par unité dans [15%, 20%],
     flux numpy (graine, crc32(unité)), graine par défaut INCUMBENCY_SEED
  3. Effet d'entraînement (coattail) : 0% / +15% / +25%
  4. Appui local et force de campagne

Les facteurs 2-4 se composent multiplicativement en un facteur par unité,
appliqué une seule fois puis arrondi au vote entier. Une unité inconnue dans
une surcharge est ignorée ; seule l'unité à fragmenter doit exister.
"""

from __future__ import annotations

import logging
import zlib
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from colombia_elections.config import INCUMBENCY_PENALTY_RANGE, INCUMBENCY_SEED
from colombia_elections.engine.ranking import (
    CandidateRanking,
    political_units,
    round_votes,
    sort_ranking,
)
from colombia_elections.errors import InvalidParameterError, UnknownFragmentationUnitError
from colombia_elections.scenarios.params import (
    CampaignStrengthLevel,
    CoattailEffect,
    LocalSupportLevel,
    SimulationParams,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 1. Fragmentation
# ---------------------------------------------------------------------------

def fragment_votes(
    ranking: Sequence[CandidateRanking],
    unit: Optional[str],
    num_candidates: int,
) -> List[CandidateRanking]:
    """Répartit les voix de chaque entrée de `unit` entre `num_candidates` candidats.

    Les nouvelles entrées sont nommées "<candidat> (i/N)".

    Args:
        ranking: classement de départ.
        unit: unité politique à fragmenter (None = aucune fragmentation).
        num_candidates: nombre de nouveaux candidats (≥ 1).

    Returns:
        Nouveau classement trié.
    """
    if num_candidates < 1:
        raise InvalidParameterError(
            f"num_candidates doit être ≥ 1 (reçu : {num_candidates}).",
            field="num_candidates", value=num_candidates,
        )
    if not unit:
        return sort_ranking(ranking)
    if unit not in political_units(ranking):
        raise UnknownFragmentationUnitError(
            f"Unité à fragmenter absente du classement : {unit!r}",
            field="fragmentation_unit", value=unit,
        )
    if num_candidates == 1:
        return sort_ranking(ranking)

    fragmented: List[CandidateRanking] = []
    for c in ranking:
        if c.political_unit != unit:
            fragmented.append(c)
            continue
        share, remainder = divmod(c.base_electoral_power, num_candidates)
        for i in range(num_candidates):
            fragmented.append(CandidateRanking(
                candidate=f"{c.candidate} ({i + 1}/{num_candidates})",
                political_unit=unit,
                base_electoral_power=share + (remainder if i == 0 else 0),
            ))

    logger.debug("Fragmentation de %s en %d candidats", unit, num_candidates)
    return sort_ranking(fragmented)


# ---------------------------------------------------------------------------
# 2-4. Facteurs multiplicatifs par unité
# ---------------------------------------------------------------------------

def _known(units: Iterable[str], ranking: Sequence[CandidateRanking], factor: str) -> List[str]:
    present = set(political_units(ranking))
    known = []
    for unit in units:
        if unit in present:
            known.append(unit)
        else:
            logger.debug("%s : unité inconnue ignorée (%s)", factor, unit)
    return known


def _unit_rng(seed: Optional[int], unit: str) -> np.random.Generator:
    # Flux propre à chaque unité : le tirage ne dépend pas des autres unités choisies
    if seed is None:
        seed = INCUMBENCY_SEED
    return np.random.default_rng([seed, zlib.crc32(unit.encode("utf-8"))])


def incumbency_factors(
    ranking: Sequence[CandidateRanking],
    government_parties: Iterable[str],
    seed: Optional[int] = None,
) -> Dict[str, float]:
    """Multiplicateur de pénalité de gouvernement, un tirage par unité.

    Tous les candidats d'une unité pénalisée voient le même multiplicateur.
    """
    low, high = INCUMBENCY_PENALTY_RANGE
    return {
        unit: 1.0 - float(_unit_rng(seed, unit).uniform(low, high))
        for unit in _known(sorted(government_parties), ranking, "gouvernement")
    }


def coattail_factors(
    ranking: Sequence[CandidateRanking],
    coattail_effect: Optional[CoattailEffect],
) -> Dict[str, float]:
    if coattail_effect is None:
        return {}
    return {
        unit: coattail_effect.strength.factor
        for unit in _known([coattail_effect.unit], ranking, "coattail")
    }


def local_support_factors(
    ranking: Sequence[CandidateRanking],
    local_support: Mapping[str, LocalSupportLevel],
) -> Dict[str, float]:
    return {
        unit: local_support[unit].factor
        for unit in _known(local_support, ranking, "appui local")
    }


def campaign_strength_factors(
    ranking: Sequence[CandidateRanking],
    campaign_strength: Mapping[str, CampaignStrengthLevel],
) -> Dict[str, float]:
    return {
        unit: campaign_strength[unit].factor
        for unit in _known(campaign_strength, ranking, "campagne")
    }


def compose_factors(*factor_maps: Mapping[str, float]) -> Dict[str, float]:
    """Compose des facteurs par unité (produit, jamais somme)."""
    combined: Dict[str, float] = {}
    for factors in factor_maps:
        for unit, f in factors.items():
            combined[unit] = combined.get(unit, 1.0) * f
    return combined


def apply_factors(
    ranking: Sequence[CandidateRanking],
    factors: Mapping[str, float],
) -> List[CandidateRanking]:
    """Applique un multiplicateur par unité ; arrondi au vote entier."""
    adjusted = [
        CandidateRanking(
            candidate=c.candidate,
            political_unit=c.political_unit,
            base_electoral_power=round_votes(c.base_electoral_power * factors[c.political_unit]),
        )
        if c.political_unit in factors else c
        for c in ranking
    ]
    return sort_ranking(adjusted)


def apply_incumbency_penalty(
    ranking: Sequence[CandidateRanking],
    government_parties: Iterable[str],
    seed: Optional[int] = None,
) -> List[CandidateRanking]:
    return apply_factors(ranking, incumbency_factors(ranking, government_parties, seed))


def apply_coattail_effect(
    ranking: Sequence[CandidateRanking],
    coattail_effect: Optional[CoattailEffect],
) -> List[CandidateRanking]:
    return apply_factors(ranking, coattail_factors(ranking, coattail_effect))


def apply_local_support(
    ranking: Sequence[CandidateRanking],
    local_support: Mapping[str, LocalSupportLevel],
) -> List[CandidateRanking]:
    return apply_factors(ranking, local_support_factors(ranking, local_support))


def apply_campaign_strength(
    ranking: Sequence[CandidateRanking],
    campaign_strength: Mapping[str, CampaignStrengthLevel],
) -> List[CandidateRanking]:
    return apply_factors(ranking, campaign_strength_factors(ranking, campaign_strength))


# ---------------------------------------------------------------------------
# Chaîne complète
# ---------------------------------------------------------------------------

def scenario_rankings(
    ranking: Sequence[CandidateRanking],
    params: SimulationParams,
    seed: Optional[int] = None,
) -> Tuple[List[CandidateRanking], List[CandidateRanking]]:
    """Applique la chaîne d'ajustements.

    Returns:
        (classement fragmenté, classement ajusté final).
    """
    fragmented = fragment_votes(ranking, params.fragmentation_unit, params.num_candidates)
    factors = compose_factors(
        incumbency_factors(fragmented, params.government_parties, seed),
        coattail_factors(fragmented, params.coattail_effect),
        local_support_factors(fragmented, params.local_support),
        campaign_strength_factors(fragmented, params.campaign_strength),
    )
    return fragmented, apply_factors(fragmented, factors)


def adjust(
    ranking: Sequence[CandidateRanking],
    params: SimulationParams,
    seed: Optional[int] = None,
) -> List[CandidateRanking]:
    """Classement ajusté selon les hypothèses du scénario (fonction pure).

    Args:
        ranking: classement de base.
        params: hypothèses du scénario.
        seed: graine du tirage de la pénalité de gouvernement (None = INCUMBENCY_SEED).

    Returns:
        Nouveau classement ajusté, trié.
    """
    return scenario_rankings(ranking, params, seed)[1]
