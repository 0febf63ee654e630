"""Simulation Monte Carlo de la probabilité d'obtenir une curul.

Perturbations (multiplicatives, indépendantes par candidat et par essai) :
  - UNIFORM : facteur 1 + U(-m, m)      (défaut, m = 10%)
  - NORMAL  : facteur N(1, m), tronqué à 0

Un candidat « gagne » un essai si ses voix perturbées atteignent le seuil.
Les essais sont découpés en lots. Dans le lot k, chaque candidat tire dans
son propre flux, dérivé du k-ième enfant de SeedSequence(seed) et de la clé
(unité, candidat) : le résultat ne dépend ni de la position du candidat dans
le classement ni du nombre de workers. L'annulation est vérifiée entre deux lots.

Sorties :
  - P(curul) et voix projetées par candidat
  - Intervalle de confiance (Wilson) d'une probabilité
  - Distribution des sièges D'Hondt par parti (simulate_seats)
"""

from __future__ import annotations

import logging
import math
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from colombia_elections.config import (
    MC_BATCH_SIZE,
    MC_MAX_ITERATIONS,
    MC_MIN_ITERATIONS,
    MC_NOISE_MAGNITUDE,
    MC_SEAT_CONFIDENCE,
)
from colombia_elections.engine.allocation import allocate
from colombia_elections.engine.ranking import CandidateRanking, round_votes
from colombia_elections.errors import (
    InvalidIterationCountError,
    InvalidParameterError,
    InvalidSeatCountError,
    SimulationCancelled,
)
from colombia_elections.scenarios.params import SimulationParams

logger = logging.getLogger(__name__)

Seed = Union[int, np.random.SeedSequence, None]
CancelCheck = Optional[Callable[[], bool]]


class NoiseModel(Enum):
    UNIFORM = "uniform"
    NORMAL = "normal"


@dataclass(frozen=True)
class ProbabilityResult:
    """Probabilité (en %) qu'un candidat obtienne la curul."""
    candidate: str
    probabilidad_curul: float
    votos_proyectados: int


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def check_iterations(iterations: int) -> None:
    if not MC_MIN_ITERATIONS <= iterations <= MC_MAX_ITERATIONS:
        raise InvalidIterationCountError(
            f"Le nombre d'itérations doit être compris entre {MC_MIN_ITERATIONS} "
            f"et {MC_MAX_ITERATIONS} (reçu : {iterations}).",
            field="monte_carlo_iterations", value=iterations,
        )


def _check_noise(noise: Union[NoiseModel, str], magnitude: float) -> NoiseModel:
    if magnitude < 0:
        raise InvalidParameterError(
            f"L'amplitude du bruit doit être ≥ 0 (reçu : {magnitude}).",
            field="magnitude", value=magnitude,
        )
    try:
        return NoiseModel(noise)
    except ValueError:
        raise InvalidParameterError(
            f"Modèle de bruit inconnu : {noise!r}", field="noise", value=noise,
        ) from None


def _seed_sequence(seed: Seed) -> np.random.SeedSequence:
    if isinstance(seed, np.random.SeedSequence):
        # Copie : spawn() incrémente le compteur de la séquence reçue
        return np.random.SeedSequence(
            seed.entropy, spawn_key=seed.spawn_key, pool_size=seed.pool_size,
        )
    return np.random.SeedSequence(seed)


# ---------------------------------------------------------------------------
# Perturbation & lots
# ---------------------------------------------------------------------------

def perturbation_factors(
    rng: np.random.Generator,
    shape: Union[int, Tuple[int, ...]],
    noise: NoiseModel = NoiseModel.UNIFORM,
    magnitude: float = MC_NOISE_MAGNITUDE,
) -> np.ndarray:
    """Facteurs multiplicatifs autour de 1.0 (jamais négatifs)."""
    if noise is NoiseModel.UNIFORM:
        factors = 1.0 + rng.uniform(-magnitude, magnitude, size=shape)
    else:
        factors = rng.normal(1.0, magnitude, size=shape)
    return np.maximum(factors, 0.0)


def keyed_factors(
    ss: np.random.SeedSequence,
    keys: Sequence[str],
    size: int,
    noise: NoiseModel = NoiseModel.UNIFORM,
    magnitude: float = MC_NOISE_MAGNITUDE,
) -> np.ndarray:
    """Matrice (size, len(keys)) : la colonne j suit le flux de la clé keys[j].

    Le flux d'un candidat ne dépend que de (graine, clé), pas de sa position.
    """
    state = [int(x) for x in ss.generate_state(4)]
    columns = [
        perturbation_factors(
            np.random.default_rng(state + [zlib.crc32(key.encode("utf-8"))]), size, noise, magnitude,
        )
        for key in keys
    ]
    return np.column_stack(columns) if columns else np.empty((size, 0))


def _batch_sizes(iterations: int, batch_size: int) -> List[int]:
    full, rest = divmod(iterations, batch_size)
    return [batch_size] * full + ([rest] if rest else [])


def _run_batches(
    run_batch: Callable[[int, np.random.SeedSequence], Tuple[np.ndarray, np.ndarray]],
    sizes: Sequence[int],
    seeds: Sequence[np.random.SeedSequence],
    max_workers: int,
    should_cancel: CancelCheck,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Exécute les lots (séquentiels ou par vagues de `max_workers`).

    Les résultats sont renvoyés dans l'ordre des lots.
    """
    total = len(sizes)
    wave = max(1, max_workers)
    results: List[Tuple[np.ndarray, np.ndarray]] = []

    executor = ThreadPoolExecutor(max_workers=wave) if wave > 1 else None
    try:
        for start in range(0, total, wave):
            if should_cancel is not None and should_cancel():
                logger.info("Simulation annulée après %d/%d lots", start, total)
                raise SimulationCancelled(start, total)
            jobs = list(zip(sizes[start:start + wave], seeds[start:start + wave]))
            if executor is None:
                results.extend(run_batch(size, ss) for size, ss in jobs)
            else:
                futures = [executor.submit(run_batch, size, ss) for size, ss in jobs]
                results.extend(f.result() for f in futures)
    finally:
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)
    return results


# ---------------------------------------------------------------------------
# Probabilité de curul par candidat
# ---------------------------------------------------------------------------

def simulate(
    ranking: Sequence[CandidateRanking],
    params: SimulationParams,
    seed: Seed = None,
    noise: Union[NoiseModel, str] = NoiseModel.UNIFORM,
    magnitude: float = MC_NOISE_MAGNITUDE,
    batch_size: int = MC_BATCH_SIZE,
    max_workers: int = 1,
    should_cancel: CancelCheck = None,
) -> List[ProbabilityResult]:
    """Estime la probabilité de chaque candidat d'atteindre le seuil.

    Args:
        ranking: classement ajusté (un flux aléatoire par (unité, candidat)).
        params: utilise `threshold` et `monte_carlo_iterations`.
        seed: graine (int ou SeedSequence) ; None = entropie du système.
        noise: modèle de perturbation.
        magnitude: amplitude (demi-largeur uniforme ou σ normal).
        batch_size: essais par lot.
        max_workers: lots exécutés en parallèle.
        should_cancel: appelé entre les lots ; True → SimulationCancelled.

    Returns:
        Liste de ProbabilityResult triée par probabilité décroissante.
    """
    iterations = params.monte_carlo_iterations
    check_iterations(iterations)
    noise = _check_noise(noise, magnitude)
    if params.threshold < 0:
        raise InvalidParameterError(
            f"Le seuil doit être ≥ 0 (reçu : {params.threshold}).",
            field="threshold", value=params.threshold,
        )
    if batch_size < 1:
        raise InvalidParameterError(
            f"batch_size doit être ≥ 1 (reçu : {batch_size}).", field="batch_size", value=batch_size,
        )
    if not ranking:
        return []

    base = np.array([c.base_electoral_power for c in ranking], dtype=float)
    threshold = float(params.threshold)

    keys = [f"{c.political_unit}|{c.candidate}" for c in ranking]

    def run_batch(size: int, ss: np.random.SeedSequence) -> Tuple[np.ndarray, np.ndarray]:
        perturbed = base * keyed_factors(ss, keys, size, noise, magnitude)
        return (perturbed >= threshold).sum(axis=0), perturbed.sum(axis=0)

    sizes = _batch_sizes(iterations, batch_size)
    seeds = _seed_sequence(seed).spawn(len(sizes))
    partials = _run_batches(run_batch, sizes, seeds, max_workers, should_cancel)

    # Réduction dans l'ordre des lots
    wins = np.zeros(base.size, dtype=np.int64)
    totals = np.zeros(base.size, dtype=float)
    for batch_wins, batch_totals in partials:
        wins += batch_wins
        totals += batch_totals

    results = [
        ProbabilityResult(
            candidate=c.candidate,
            probabilidad_curul=float(wins[i]) / iterations * 100.0,
            votos_proyectados=round_votes(float(totals[i]) / iterations),
        )
        for i, c in enumerate(ranking)
    ]
    logger.info(
        "Monte Carlo : %d candidats, %d itérations, seuil %s", len(results), iterations, params.threshold,
    )
    return sorted(results, key=lambda r: (-r.probabilidad_curul, r.candidate))


def probability_interval(
    result: ProbabilityResult,
    iterations: int,
    confidence: float = MC_SEAT_CONFIDENCE,
) -> Tuple[float, float]:
    """Intervalle de confiance de Wilson (en %) sur une probabilité estimée.

    Returns:
        (low, high) en pourcentage.
    """
    check_iterations(iterations)
    wins = round_votes(result.probabilidad_curul * iterations / 100.0)
    ci = stats.binomtest(wins, iterations).proportion_ci(
        confidence_level=confidence, method="wilson",
    )
    return (float(ci.low) * 100.0, float(ci.high) * 100.0)


# ---------------------------------------------------------------------------
# Distribution des sièges D'Hondt
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PartySeatOutlook:
    """Curules attendues d'un parti sur l'ensemble des essais."""
    party: str
    expected_seats: float
    modal_seats: int
    seats_low: int
    seats_high: int
    probabilidad_curul: float   # P(au moins une curul), en %


@dataclass
class SeatDistribution:
    """Curules obtenues par chaque parti, essai par essai (répartition D'Hondt)."""
    n_iterations: int
    total_seats: int
    # dict parti → array (n_iterations,) du nombre de curules
    seats_distributions: Dict[str, np.ndarray] = field(default_factory=dict)

    def _seats(self, party: str) -> np.ndarray:
        return self.seats_distributions.get(party, np.zeros(self.n_iterations, dtype=int))

    def seat_counts(self, party: str) -> Dict[int, float]:
        """P(exactement k curules) en %, pour chaque k observé."""
        counts = np.bincount(self._seats(party), minlength=1)
        return {
            k: float(c) / self.n_iterations * 100.0
            for k, c in enumerate(counts) if c > 0
        }

    def modal_seats(self, party: str) -> int:
        """Nombre de curules le plus fréquent (le plus petit en cas d'égalité)."""
        return int(np.argmax(np.bincount(self._seats(party), minlength=1)))

    def seats_range(self, party: str, confidence: float = MC_SEAT_CONFIDENCE) -> Tuple[int, int]:
        """Fourchette de curules (bornes entières) couvrant `confidence` des essais."""
        seats = self._seats(party)
        alpha = (1 - confidence) / 2
        return (
            int(np.quantile(seats, alpha, method="lower")),
            int(np.quantile(seats, 1 - alpha, method="higher")),
        )

    def seat_probability(self, party: str, min_seats: int = 1) -> float:
        """P(curules ≥ min_seats) en %."""
        return float((self._seats(party) >= min_seats).mean()) * 100.0

    def outlook(self) -> List[PartySeatOutlook]:
        """Perspective par parti, triée par curules attendues décroissantes."""
        rows = []
        for party in self.seats_distributions:
            low, high = self.seats_range(party)
            rows.append(PartySeatOutlook(
                party=party,
                expected_seats=float(self._seats(party).mean()),
                modal_seats=self.modal_seats(party),
                seats_low=low,
                seats_high=high,
                probabilidad_curul=self.seat_probability(party),
            ))
        return sorted(rows, key=lambda r: (-r.expected_seats, r.party))


def simulate_seats(
    votes: Mapping[str, int],
    total_seats: int,
    iterations: int = 1_000,
    seed: Seed = None,
    noise: Union[NoiseModel, str] = NoiseModel.UNIFORM,
    magnitude: float = MC_NOISE_MAGNITUDE,
    threshold_pct: float = 0.0,
    should_cancel: CancelCheck = None,
) -> SeatDistribution:
    """Perturbe les voix par parti et refait la répartition D'Hondt à chaque essai.

    Args:
        votes: dict parti → voix.
        total_seats: curules à répartir.
        iterations: nombre d'essais.
        seed: graine aléatoire (reproductibilité).
        noise: modèle de perturbation.
        magnitude: amplitude de la perturbation.
        threshold_pct: seuil (umbral) de la répartition.
        should_cancel: vérifié tous les MC_BATCH_SIZE essais.

    Returns:
        SeatDistribution.
    """
    if total_seats <= 0:
        raise InvalidSeatCountError(
            f"Le nombre de curules doit être ≥ 1 (reçu : {total_seats}).",
            field="total_seats", value=total_seats,
        )
    check_iterations(iterations)
    noise = _check_noise(noise, magnitude)

    parties = list(votes)
    base = np.array([votes[p] for p in parties], dtype=float)
    perturbed = base * keyed_factors(_seed_sequence(seed), parties, iterations, noise, magnitude)
    all_seats = {p: np.zeros(iterations, dtype=int) for p in parties}
    n_batches = math.ceil(iterations / MC_BATCH_SIZE)

    for i in range(iterations):
        if should_cancel is not None and i % MC_BATCH_SIZE == 0 and should_cancel():
            raise SimulationCancelled(i // MC_BATCH_SIZE, n_batches)

        analysis = allocate(
            {p: round_votes(v) for p, v in zip(parties, perturbed[i])},
            total_seats,
            threshold_pct,
        )
        for alloc in analysis.seats:
            all_seats[alloc.party][i] = alloc.seats

    return SeatDistribution(
        n_iterations=iterations,
        total_seats=total_seats,
        seats_distributions=all_seats,
    )
