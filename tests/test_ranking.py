"""Tests du classement de base."""

import pytest
from pydantic import ValidationError

from colombia_elections.config import LIST_ONLY_SENTINEL
from colombia_elections.data.schemas import VoteRecord
from colombia_elections.engine.ranking import (
    CandidateRanking,
    calculate_base_ranking,
    party_votes,
    political_units,
    ranking_from_votes,
    ranking_total,
    round_votes,
    votes_by_unit,
)
from colombia_elections.errors import EmptyDatasetError


def rec(unit, candidate, votes):
    return VoteRecord(political_unit=unit, candidate=candidate, votes=votes)


class TestVoteRecord:
    """Validation des enregistrements."""

    def test_negative_votes_rejected(self):
        with pytest.raises(ValidationError):
            VoteRecord(political_unit="A", candidate="x", votes=-1)

    def test_empty_unit_rejected(self):
        with pytest.raises(ValidationError):
            VoteRecord(political_unit="   ", candidate="x", votes=1)

    def test_default_candidate_is_list_only(self):
        r = VoteRecord(political_unit="A", votes=10)
        assert r.is_list_only
        assert rec("A", "solo por la lista", 3).is_list_only


class TestBaseRanking:
    """Tests de calculate_base_ranking."""

    def test_aggregation_and_sort(self):
        """Les voix d'un même (candidat, unité) sont sommées."""
        ranking = calculate_base_ranking([
            rec("U1", "Ana", 100),
            rec("U1", "Ana", 50),
            rec("U2", "Luis", 200),
            rec("U2", "Ana", 10),
        ])
        assert ranking == [
            CandidateRanking("Luis", "U2", 200),
            CandidateRanking("Ana", "U1", 150),
            CandidateRanking("Ana", "U2", 10),
        ]

    def test_tie_sorted_by_name(self):
        ranking = calculate_base_ranking([rec("U", "Beto", 100), rec("U", "Alba", 100)])
        assert [c.candidate for c in ranking] == ["Alba", "Beto"]

    def test_zero_votes_excluded(self):
        ranking = calculate_base_ranking([rec("U", "Ana", 100), rec("U", "Luis", 0)])
        assert [c.candidate for c in ranking] == ["Ana"]

    def test_party_level_dataset(self):
        """Jeu 100% votes de liste → un classement par unité."""
        ranking = calculate_base_ranking([
            rec("PARTIDO A", LIST_ONLY_SENTINEL, 300),
            rec("PARTIDO A", LIST_ONLY_SENTINEL, 200),
            rec("PARTIDO B", LIST_ONLY_SENTINEL, 400),
        ])
        assert ranking == [
            CandidateRanking("PARTIDO A", "PARTIDO A", 500),
            CandidateRanking("PARTIDO B", "PARTIDO B", 400),
        ]

    def test_list_votes_excluded_from_candidate_ranking(self):
        """Jeu mixte : les votes de liste ne créent pas de candidat."""
        records = [
            rec("PARTIDO A", LIST_ONLY_SENTINEL, 1000),
            rec("PARTIDO A", "Ana", 100),
        ]
        ranking = calculate_base_ranking(records)
        assert ranking == [CandidateRanking("Ana", "PARTIDO A", 100)]
        # ... mais comptent dans les voix du parti
        assert party_votes(records) == {"PARTIDO A": 1100}

    def test_does_not_mutate_input(self):
        records = [rec("U", "Ana", 1), rec("U", "Luis", 2)]
        copy = list(records)
        calculate_base_ranking(records)
        assert records == copy

    def test_empty_dataset(self):
        with pytest.raises(EmptyDatasetError):
            calculate_base_ranking([])

    def test_no_positive_votes(self):
        with pytest.raises(EmptyDatasetError):
            calculate_base_ranking([rec("U", "Ana", 0)])

    def test_only_list_votes_with_zero_candidates(self):
        """Jeu mixte dont seuls les votes de liste sont positifs → vide."""
        with pytest.raises(EmptyDatasetError):
            calculate_base_ranking([rec("U", LIST_ONLY_SENTINEL, 10), rec("U", "Ana", 0)])


class TestHelpers:
    """Fonctions utilitaires du classement."""

    def test_round_votes_half_up(self):
        assert round_votes(2.5) == 3
        assert round_votes(3.5) == 4
        assert round_votes(2.4999) == 2

    def test_votes_by_unit(self):
        ranking = [
            CandidateRanking("Ana", "U1", 100),
            CandidateRanking("Luis", "U1", 50),
            CandidateRanking("Eva", "U2", 120),
        ]
        assert votes_by_unit(ranking) == {"U1": 150, "U2": 120}
        assert ranking_total(ranking) == 270
        assert political_units(ranking) == ["U1", "U2"]

    def test_ranking_from_votes(self):
        ranking = ranking_from_votes({"B": 10, "A": 30})
        assert ranking == [
            CandidateRanking("A", "A", 30),
            CandidateRanking("B", "B", 10),
        ]
