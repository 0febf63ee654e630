"""Algorithme D'Hondt (cifra repartidora) avec trace complète des attributions.

Références :
  - Constitution colombienne, art. 263 (répartition par la méthode D'Hondt)
  - Égalité de quotients : la liste avec le plus de voix l'emporte,
    puis l'ordre lexical du nom (règle documentée, reproductible)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Mapping, Optional, Tuple

from colombia_elections.engine.ranking import round_votes
from colombia_elections.errors import (
    InvalidParameterError,
    InvalidSeatCountError,
    NoVotesError,
)


@dataclass(frozen=True)
class DHondtStep:
    """Une ligne de la trace : le siège n° `seat_number` va à `party`."""
    seat_number: int
    party: str
    quotient: float
    party_votes: int
    seats_won: int     # sièges cumulés du parti après cette étape


@dataclass(frozen=True)
class SeatAllocation:
    party: str
    seats: int


@dataclass(frozen=True)
class VotesPerSeat:
    """Voix par siège obtenu (efficacité), arrondi au vote entier."""
    party: str
    votes: int


@dataclass(frozen=True)
class DHondtAnalysis:
    """Résultat complet d'une répartition D'Hondt."""
    seats: List[SeatAllocation]
    steps: List[DHondtStep]
    total_votes: int
    votes_per_seat: List[VotesPerSeat]
    last_seat_winner: Optional[DHondtStep]
    runner_up: Optional[DHondtStep]
    total_seats: int
    threshold_pct: float = 0.0

    def seats_by_party(self) -> Dict[str, int]:
        return {s.party: s.seats for s in self.seats}

    @property
    def closest_miss(self) -> Optional[float]:
        """Écart de quotient entre le dernier siège et le premier non élu."""
        if self.last_seat_winner is None or self.runner_up is None:
            return None
        return self.last_seat_winner.quotient - self.runner_up.quotient


def _priority(votes: int, seats: int, party: str) -> Tuple[Fraction, int, str]:
    # Comparaison exacte des quotients : pas d'égalité manquée par arrondi flottant
    return (-Fraction(votes, seats + 1), -votes, party)


def allocate(
    votes: Mapping[str, int],
    total_seats: int,
    threshold_pct: float = 0.0,
) -> DHondtAnalysis:
    """Répartition à la plus forte moyenne (D'Hondt).

    Args:
        votes: dict unité politique → nombre de voix.
        total_seats: nombre de curules à répartir.
        threshold_pct: seuil (umbral) en fraction des voix pour participer
                       à la répartition ; 0 = pas de seuil.

    Returns:
        DHondtAnalysis avec la trace de chaque attribution.

    Raises:
        InvalidSeatCountError: total_seats ≤ 0.
        NoVotesError: aucune voix au total.
        InvalidParameterError: voix négatives.
    """
    if total_seats <= 0:
        raise InvalidSeatCountError(
            f"Le nombre de curules doit être ≥ 1 (reçu : {total_seats}).",
            field="total_seats", value=total_seats,
        )

    negative = sorted(k for k, v in votes.items() if v < 0)
    if negative:
        raise InvalidParameterError(
            f"Voix négatives pour : {', '.join(negative)}", field="votes", value=negative,
        )

    valid = {k: int(v) for k, v in votes.items() if v > 0}
    total_votes = sum(valid.values())
    if total_votes == 0:
        raise NoVotesError("Aucune voix à répartir.", field="votes", value=0)

    # Filtrer les listes sous le seuil
    eligible = {k: v for k, v in valid.items() if v / total_votes >= threshold_pct}
    if not eligible:
        # Aucune liste éligible → répartir entre toutes (cas dégénéré)
        eligible = dict(valid)

    seats: Dict[str, int] = {k: 0 for k in valid}
    steps: List[DHondtStep] = []
    runner_up: Optional[DHondtStep] = None

    for seat_number in range(1, total_seats + 1):
        ordered = sorted(eligible, key=lambda k: _priority(eligible[k], seats[k], k))
        winner = ordered[0]
        quotient = eligible[winner] / (seats[winner] + 1)
        seats[winner] += 1
        steps.append(DHondtStep(
            seat_number=seat_number,
            party=winner,
            quotient=quotient,
            party_votes=eligible[winner],
            seats_won=seats[winner],
        ))

        if seat_number == total_seats and len(ordered) > 1:
            second = ordered[1]
            runner_up = DHondtStep(
                seat_number=seat_number,
                party=second,
                quotient=eligible[second] / (seats[second] + 1),
                party_votes=eligible[second],
                seats_won=seats[second],
            )

    final_seats = [
        SeatAllocation(party=k, seats=seats[k])
        for k in sorted(valid, key=lambda k: (-seats[k], -valid[k], k))
    ]

    per_seat = sorted(
        (VotesPerSeat(party=k, votes=round_votes(valid[k] / n)) for k, n in seats.items() if n > 0),
        key=lambda x: (x.votes, x.party),
    )

    return DHondtAnalysis(
        seats=final_seats,
        steps=steps,
        total_votes=total_votes,
        votes_per_seat=per_seat,
        last_seat_winner=steps[-1],
        runner_up=runner_up,
        total_seats=total_seats,
        threshold_pct=threshold_pct,
    )


def _threshold_floor(analysis: DHondtAnalysis, current: int) -> Optional[int]:
    """Voix minimales pour atteindre le seuil, les autres listes inchangées."""
    t = Fraction(analysis.threshold_pct)
    if t <= 0:
        return 0
    if t >= 1:
        return None
    others = analysis.total_votes - current
    return math.ceil(t * others / (1 - t))


def votes_for_next_seat(
    analysis: DHondtAnalysis,
    votes: Mapping[str, int],
) -> Dict[str, int]:
    """Voix supplémentaires nécessaires à chaque parti pour ravir le dernier siège.

    Le détenteur du dernier siège n'apparaît pas dans le résultat, ni un parti
    qui ne peut pas atteindre le seuil. Une liste sous le seuil doit aussi le
    franchir : le besoin tient compte de la hausse du total des voix.

    Args:
        analysis: répartition calculée par `allocate`.
        votes: les mêmes voix que celles passées à `allocate`.

    Returns:
        dict parti → voix manquantes.
    """
    last = analysis.last_seat_winner
    if last is None:
        return {}

    # Quotient exact du dernier siège
    target = Fraction(last.party_votes, last.seats_won)
    needed: Dict[str, int] = {}
    for alloc in analysis.seats:
        if alloc.party == last.party:
            continue
        current = int(votes.get(alloc.party, 0))
        eligible_from = _threshold_floor(analysis, current)
        if eligible_from is None:
            continue
        bound = target * (alloc.seats + 1)
        required = math.floor(bound)
        if required == bound:
            # Égalité de quotient : départage par les voix puis par le nom
            ties_win = required > last.party_votes or (
                required == last.party_votes and alloc.party < last.party
            )
            if not ties_win:
                required += 1
        else:
            required += 1
        needed[alloc.party] = max(0, max(required, eligible_from) - current)
    return needed


def compute_quotient_table(
    votes: Mapping[str, int],
    max_divisor: int = 20,
) -> List[Tuple[str, int, float]]:
    """Table des quotients D'Hondt (utile pour l'export / la visualisation).

    Returns:
        Liste de (liste, diviseur, quotient) triée par quotient décroissant,
        égalités départagées comme dans `allocate`.
    """
    table = []
    for name, v in votes.items():
        for d in range(1, max_divisor + 1):
            table.append((name, d, v / d))
    table.sort(key=lambda x: (-Fraction(int(votes[x[0]]), x[1]), -votes[x[0]], x[0]))
    return table
