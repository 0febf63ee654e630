"""Orchestrateur complet de l'analyse électorale.

Enchaîne :
  1. VoteRecord → classement de base
  2. Voix par parti → répartition D'Hondt (trace complète)
  3. Scénario (optionnel) : fragmentation → facteurs → Monte Carlo
  4. Répartition D'Hondt du scénario

Soit tout est calculé, soit une erreur est levée : aucun résultat partiel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from colombia_elections.config import MC_BATCH_SIZE, MC_NOISE_MAGNITUDE
from colombia_elections.data.schemas import VoteRecord
from colombia_elections.engine.allocation import DHondtAnalysis, allocate
from colombia_elections.engine.ranking import (
    CandidateRanking,
    calculate_base_ranking,
    party_votes,
    round_votes,
    votes_by_unit,
)
from colombia_elections.scenarios.adjust import scenario_rankings
from colombia_elections.scenarios.montecarlo import (
    CancelCheck,
    NoiseModel,
    ProbabilityResult,
    Seed,
    _check_noise,
    simulate,
)
from colombia_elections.scenarios.params import SimulationParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResults:
    """Les trois vues dérivées d'un scénario."""
    fragmented_ranking: List[CandidateRanking]
    factored_ranking: List[CandidateRanking]
    probabilities: List[ProbabilityResult]


@dataclass(frozen=True)
class ElectoralAnalysis:
    """Résultat complet d'une analyse (base + scénario éventuel)."""
    base_ranking: List[CandidateRanking]
    party_votes: Dict[str, int]
    dhondt: DHondtAnalysis
    scenario: Optional[SimulationResults] = None
    scenario_dhondt: Optional[DHondtAnalysis] = None

    def seat_changes(self) -> Dict[str, int]:
        """Sièges gagnés (+) ou perdus (-) par parti dans le scénario."""
        if self.scenario_dhondt is None:
            return {}
        base = self.dhondt.seats_by_party()
        scenario = self.scenario_dhondt.seats_by_party()
        return {
            party: scenario.get(party, 0) - base.get(party, 0)
            for party in sorted(set(base) | set(scenario))
        }


def scenario_party_votes(
    votes: Mapping[str, int],
    base_ranking: Sequence[CandidateRanking],
    factored_ranking: Sequence[CandidateRanking],
) -> Dict[str, int]:
    """Applique aux voix par parti la variation de puissance de chaque unité.

    Les votes de liste (logo) suivent ainsi les mêmes facteurs que les
    candidats ; une unité absente du classement garde ses voix.
    """
    base_units = votes_by_unit(base_ranking)
    factored_units = votes_by_unit(factored_ranking)
    adjusted = {}
    for party, v in votes.items():
        base_total = base_units.get(party, 0)
        if base_total > 0:
            adjusted[party] = round_votes(v * factored_units.get(party, 0) / base_total)
        else:
            adjusted[party] = v
    return adjusted


def _penalty_seed(seed: Seed) -> Optional[int]:
    if seed is None:
        return None
    if isinstance(seed, np.random.SeedSequence):
        return int(seed.generate_state(1)[0])
    return int(seed)


class ElectoralSimulator:
    """Orchestrateur de l'analyse : classement, D'Hondt, scénarios."""

    def __init__(
        self,
        noise: Union[NoiseModel, str] = NoiseModel.UNIFORM,
        magnitude: float = MC_NOISE_MAGNITUDE,
        batch_size: int = MC_BATCH_SIZE,
        max_workers: int = 1,
    ):
        self.noise = _check_noise(noise, magnitude)
        self.magnitude = magnitude
        self.batch_size = batch_size
        self.max_workers = max_workers

    def run(
        self,
        ranking: Sequence[CandidateRanking],
        params: SimulationParams,
        seed: Seed = None,
        should_cancel: CancelCheck = None,
    ) -> SimulationResults:
        """Simule un scénario sur un classement.

        Args:
            ranking: classement de base.
            params: hypothèses du scénario.
            seed: graine (pénalité de gouvernement et Monte Carlo).
            should_cancel: annulation coopérative entre les lots Monte Carlo.

        Returns:
            SimulationResults.
        """
        fragmented, factored = scenario_rankings(ranking, params, _penalty_seed(seed))
        probabilities = simulate(
            factored,
            params,
            seed=seed,
            noise=self.noise,
            magnitude=self.magnitude,
            batch_size=self.batch_size,
            max_workers=self.max_workers,
            should_cancel=should_cancel,
        )
        return SimulationResults(
            fragmented_ranking=fragmented,
            factored_ranking=factored,
            probabilities=probabilities,
        )

    def allocate_seats(
        self,
        ranking_or_votes: Union[Sequence[CandidateRanking], Mapping[str, int]],
        total_seats: int,
        threshold_pct: float = 0.0,
    ) -> DHondtAnalysis:
        """Répartition D'Hondt depuis un classement (agrégé par parti) ou un dict de voix."""
        if isinstance(ranking_or_votes, Mapping):
            votes = dict(ranking_or_votes)
        else:
            votes = votes_by_unit(ranking_or_votes)
        return allocate(votes, total_seats, threshold_pct)

    def analyze(
        self,
        records: Sequence[VoteRecord],
        total_seats: int,
        params: Optional[SimulationParams] = None,
        seed: Seed = None,
        threshold_pct: float = 0.0,
        should_cancel: CancelCheck = None,
    ) -> ElectoralAnalysis:
        """Analyse complète d'un jeu de données.

        Args:
            records: VoteRecord du jeu de données.
            total_seats: curules à répartir.
            params: hypothèses du scénario (None = base seulement).
            seed: graine du scénario.
            threshold_pct: seuil (umbral) de la répartition.
            should_cancel: annulation coopérative.

        Returns:
            ElectoralAnalysis.
        """
        base_ranking = calculate_base_ranking(records)
        votes = party_votes(records)
        dhondt = allocate(votes, total_seats, threshold_pct)

        if params is None:
            logger.info("Analyse de base : %d candidats, %d partis", len(base_ranking), len(votes))
            return ElectoralAnalysis(base_ranking=base_ranking, party_votes=votes, dhondt=dhondt)

        scenario = self.run(base_ranking, params, seed=seed, should_cancel=should_cancel)
        scenario_votes = scenario_party_votes(votes, base_ranking, scenario.factored_ranking)
        scenario_dhondt = allocate(scenario_votes, total_seats, threshold_pct)

        logger.info(
            "Analyse avec scénario : %d candidats, %d partis, %d itérations",
            len(base_ranking), len(votes), params.monte_carlo_iterations,
        )
        return ElectoralAnalysis(
            base_ranking=base_ranking,
            party_votes=votes,
            dhondt=dhondt,
            scenario=scenario,
            scenario_dhondt=scenario_dhondt,
        )
