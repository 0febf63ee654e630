"""Tests de la simulation Monte Carlo."""

import numpy as np
import pytest

from colombia_elections.engine.ranking import CandidateRanking, sort_ranking
from colombia_elections.errors import (
    InvalidIterationCountError,
    InvalidParameterError,
    InvalidSeatCountError,
    SimulationCancelled,
)
from colombia_elections.scenarios.montecarlo import (
    NoiseModel,
    ProbabilityResult,
    perturbation_factors,
    probability_interval,
    simulate,
    simulate_seats,
)
from colombia_elections.scenarios.params import SimulationParams


@pytest.fixture
def ranking():
    return [
        CandidateRanking("Ana", "PARTIDO A", 16000),
        CandidateRanking("Luis", "PARTIDO B", 15000),
        CandidateRanking("Eva", "PARTIDO C", 9000),
    ]


def by_candidate(results):
    return {r.candidate: r for r in results}


class TestSimulate:
    """Tests de la probabilité de curul par candidat."""

    def test_far_above_threshold(self):
        """10 000 voix, seuil 500, bruit quasi nul → ~100%."""
        params = SimulationParams(threshold=500, monte_carlo_iterations=1000)
        results = simulate([CandidateRanking("Ana", "A", 10000)], params, seed=1, magnitude=1e-6)
        assert results[0].probabilidad_curul == pytest.approx(100.0, abs=2.0)
        assert results[0].votos_proyectados == 10000

    def test_far_below_threshold(self):
        params = SimulationParams(threshold=50000, monte_carlo_iterations=500)
        results = simulate([CandidateRanking("Ana", "A", 1000)], params, seed=1)
        assert results[0].probabilidad_curul == 0.0

    def test_bounds_and_order(self, ranking):
        params = SimulationParams(threshold=15000, monte_carlo_iterations=2000)
        results = simulate(ranking, params, seed=3)
        assert len(results) == len(ranking)
        assert all(0.0 <= r.probabilidad_curul <= 100.0 for r in results)
        probs = [r.probabilidad_curul for r in results]
        assert probs == sorted(probs, reverse=True)
        assert results[0].candidate == "Ana"
        assert by_candidate(results)["Eva"].probabilidad_curul == 0.0

    def test_projected_votes_near_base(self, ranking):
        """Bruit uniforme centré : voix projetées ≈ puissance ajustée."""
        params = SimulationParams(threshold=15000, monte_carlo_iterations=5000)
        results = by_candidate(simulate(ranking, params, seed=11))
        assert results["Ana"].votos_proyectados == pytest.approx(16000, rel=0.01)
        assert results["Eva"].votos_proyectados == pytest.approx(9000, rel=0.01)

    def test_seed_reproducible(self, ranking):
        params = SimulationParams(threshold=15500, monte_carlo_iterations=3000)
        assert simulate(ranking, params, seed=42) == simulate(ranking, params, seed=42)

    def test_seed_sequence_not_consumed(self, ranking):
        """Une SeedSequence passée en graine donne deux fois le même résultat."""
        params = SimulationParams(threshold=15500, monte_carlo_iterations=1500)
        ss = np.random.SeedSequence(9)
        assert simulate(ranking, params, seed=ss) == simulate(ranking, params, seed=ss)

    def test_independent_of_workers(self, ranking):
        """Même graine → même résultat, quel que soit le parallélisme."""
        params = SimulationParams(threshold=15500, monte_carlo_iterations=2500)
        sequential = simulate(ranking, params, seed=5, batch_size=300, max_workers=1)
        parallel = simulate(ranking, params, seed=5, batch_size=300, max_workers=4)
        assert sequential == parallel

    def test_monotonic_in_votes(self):
        """Plus de voix → probabilité au moins égale (graine fixe)."""
        params = SimulationParams(threshold=15000, monte_carlo_iterations=2000)
        previous = 0.0
        for votes in range(13000, 18001, 1000):
            result = simulate([CandidateRanking("Ana", "A", votes)], params, seed=8)[0]
            assert result.probabilidad_curul >= previous
            previous = result.probabilidad_curul

    def test_monotonic_when_order_swaps(self):
        """Dépasser un rival dans le classement ne fait pas baisser la probabilité."""
        params = SimulationParams(threshold=15000, monte_carlo_iterations=1000)
        for seed in range(30):
            behind = sort_ranking([CandidateRanking("Xavi", "X", 15000), CandidateRanking("Yara", "Y", 14999)])
            ahead = sort_ranking([CandidateRanking("Xavi", "X", 15000), CandidateRanking("Yara", "Y", 15001)])
            low = by_candidate(simulate(behind, params, seed=seed))["Yara"].probabilidad_curul
            high = by_candidate(simulate(ahead, params, seed=seed))["Yara"].probabilidad_curul
            assert high >= low

    def test_independent_of_input_order(self, ranking):
        """Chaque candidat a son propre flux : l'ordre d'entrée est sans effet."""
        params = SimulationParams(threshold=15500, monte_carlo_iterations=800)
        forward = by_candidate(simulate(ranking, params, seed=4))
        backward = by_candidate(simulate(list(reversed(ranking)), params, seed=4))
        assert forward == backward

    def test_normal_noise(self, ranking):
        params = SimulationParams(threshold=15000, monte_carlo_iterations=1000)
        results = simulate(ranking, params, seed=2, noise="normal")
        assert all(0.0 <= r.probabilidad_curul <= 100.0 for r in results)

    def test_empty_ranking(self):
        assert simulate([], SimulationParams(monte_carlo_iterations=10)) == []

    @pytest.mark.parametrize("iterations", [0, -1, 100_001])
    def test_invalid_iterations(self, ranking, iterations):
        with pytest.raises(InvalidIterationCountError):
            simulate(ranking, SimulationParams(monte_carlo_iterations=iterations))

    def test_invalid_noise(self, ranking):
        with pytest.raises(InvalidParameterError):
            simulate(ranking, SimulationParams(monte_carlo_iterations=10), noise="cauchy")
        with pytest.raises(InvalidParameterError):
            simulate(ranking, SimulationParams(monte_carlo_iterations=10), magnitude=-0.1)

    def test_negative_threshold(self, ranking):
        with pytest.raises(InvalidParameterError):
            simulate(ranking, SimulationParams(threshold=-1, monte_carlo_iterations=10))

    def test_cancellation(self, ranking):
        """L'annulation entre deux lots lève SimulationCancelled."""
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 2

        params = SimulationParams(monte_carlo_iterations=5000)
        with pytest.raises(SimulationCancelled) as exc:
            simulate(ranking, params, seed=1, batch_size=1000, should_cancel=should_cancel)
        assert exc.value.completed_batches == 2
        assert exc.value.total_batches == 5


class TestPerturbation:
    """Tests des facteurs de perturbation."""

    def test_uniform_bounds(self):
        rng = np.random.default_rng(0)
        factors = perturbation_factors(rng, 10000, NoiseModel.UNIFORM, 0.10)
        assert factors.min() >= 0.9
        assert factors.max() <= 1.1

    def test_normal_clipped(self):
        rng = np.random.default_rng(0)
        factors = perturbation_factors(rng, 10000, NoiseModel.NORMAL, 2.0)
        assert factors.min() >= 0.0


class TestProbabilityInterval:
    """Tests de l'intervalle de Wilson."""

    def test_contains_estimate(self):
        low, high = probability_interval(ProbabilityResult("Ana", 50.0, 1000), 1000)
        assert low < 50.0 < high
        assert low > 45.0
        assert high < 55.0

    def test_bounds_at_extremes(self):
        low, high = probability_interval(ProbabilityResult("Ana", 100.0, 1000), 200)
        assert high == pytest.approx(100.0)
        assert 95.0 < low < 100.0


class TestSimulateSeats:
    """Tests de la distribution des sièges D'Hondt."""

    def test_seats_sum(self):
        votes = {"A": 5000, "B": 3000, "C": 2000}
        dist = simulate_seats(votes, 10, iterations=200, seed=42)
        totals = sum(dist.seats_distributions[p] for p in votes)
        assert (totals == 10).all()

    def test_reproducible(self):
        votes = {"A": 5000, "B": 4900, "C": 100}
        a = simulate_seats(votes, 5, iterations=100, seed=1)
        b = simulate_seats(votes, 5, iterations=100, seed=1)
        for p in votes:
            assert (a.seats_distributions[p] == b.seats_distributions[p]).all()

    def test_outlook(self):
        votes = {"A": 9000, "B": 1000}
        dist = simulate_seats(votes, 4, iterations=200, seed=3)
        outlook = dist.outlook()

        assert [row.party for row in outlook] == ["A", "B"]
        assert outlook[0].expected_seats == pytest.approx(4.0)
        assert outlook[0].modal_seats == 4
        assert (outlook[0].seats_low, outlook[0].seats_high) == (4, 4)
        assert outlook[0].probabilidad_curul == pytest.approx(100.0)
        assert outlook[1].probabilidad_curul == pytest.approx(0.0)
        assert dist.seat_counts("A") == {4: pytest.approx(100.0)}

    def test_seat_counts_sum_to_hundred(self):
        votes = {"A": 5000, "B": 4900, "C": 100}
        dist = simulate_seats(votes, 5, iterations=300, seed=11)
        for party in votes:
            assert sum(dist.seat_counts(party).values()) == pytest.approx(100.0)
            low, high = dist.seats_range(party)
            assert low <= dist.modal_seats(party) <= high

    def test_absent_party(self):
        """Un parti absent n'a aucune curul."""
        dist = simulate_seats({"A": 9000, "B": 1000}, 4, iterations=50, seed=3)
        assert dist.seats_range("Z") == (0, 0)
        assert dist.modal_seats("Z") == 0
        assert dist.seat_probability("Z") == 0.0

    def test_invalid(self):
        with pytest.raises(InvalidSeatCountError):
            simulate_seats({"A": 10}, 0)
        with pytest.raises(InvalidIterationCountError):
            simulate_seats({"A": 10}, 3, iterations=0)

    def test_cancellation(self):
        with pytest.raises(SimulationCancelled):
            simulate_seats({"A": 10, "B": 5}, 3, iterations=100, should_cancel=lambda: True)
