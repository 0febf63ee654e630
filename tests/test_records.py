"""Tests de l'ingestion d'une table de résultats."""

import pandas as pd
import pytest

from colombia_elections.config import LIST_ONLY_SENTINEL
from colombia_elections.data.records import normalize_party_name, records_from_frame
from colombia_elections.errors import InvalidParameterError


def as_tuples(payload):
    return [(r.political_unit, r.candidate, r.votes) for r in payload.records]


class TestNormalize:
    """Normalisation des noms d'unités."""

    def test_accents_and_case(self):
        assert normalize_party_name(" Partido Alianza Social Independiente ") == (
            "PARTIDO ALIANZA SOCIAL INDEPENDIENTE"
        )
        assert normalize_party_name("Partido Liberal Colombiano") == "PARTIDO LIBERAL COLOMBIANO"
        assert normalize_party_name("Unión Patriótica") == "UNION PATRIOTICA"

    def test_quotes_removed(self):
        assert normalize_party_name('Movimiento "Fuerza Ciudadana"') == "MOVIMIENTO FUERZA CIUDADANA"

    def test_empty(self):
        assert normalize_party_name("") == ""
        assert normalize_party_name(None) == ""


class TestRecordsFromFrame:
    """Tests de records_from_frame."""

    def test_invalid_votes_counted(self):
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A", "", ""],
            "Candidato": ["Ana", "VOTOS NULOS", "VOTOS EN BLANCO"],
            "Votos": [100, 7, 3],
        })
        payload = records_from_frame(df)
        assert as_tuples(payload) == [("PARTIDO A", "Ana", 100)]
        assert payload.invalid_votes.null_votes == 7
        assert payload.invalid_votes.blank_votes == 3
        assert payload.invalid_votes.total == 10
        assert payload.analysis_type == "candidate"

    def test_list_only_dataset(self):
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A", "Partido B"],
            "Candidato": ["Solo por la lista", "SOLO POR LA LISTA"],
            "Votos": ["120", "80.9"],
        })
        payload = records_from_frame(df)
        assert as_tuples(payload) == [
            ("PARTIDO A", LIST_ONLY_SENTINEL, 120),
            ("PARTIDO B", LIST_ONLY_SENTINEL, 80),
        ]
        assert payload.analysis_type == "party"

    def test_head_of_list_camara(self):
        """Tête de liste à la Cámara : voix divisées par 2."""
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A", "Partido A"],
            "Candidato": ["Ana", "Luis"],
            "Votos": [1001, 500],
            "EsCabezaDeLista": ["true", "false"],
            "Eleccion": ["Cámara", "Cámara"],
        })
        payload = records_from_frame(df)
        assert as_tuples(payload) == [("PARTIDO A", "Ana", 501), ("PARTIDO A", "Luis", 500)]
        assert payload.records[0].is_head_of_list

    def test_head_of_list_other_election(self):
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A"],
            "Candidato": ["Ana"],
            "Votos": [1000],
            "EsCabezaDeLista": ["true"],
            "Eleccion": ["Senado"],
        })
        assert as_tuples(records_from_frame(df)) == [("PARTIDO A", "Ana", 1000)]

    def test_historical_alliance(self):
        """Alliance : voix divisées par le nombre d'unités distinctes."""
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A", "Partido B", "Partido C"],
            "Candidato": ["Ana", "Luis", "Eva"],
            "Votos": [900, 900, 700],
            "Eleccion": ["Senado", "Senado", "Senado"],
            "Año": [2022, 2022, 2022],
            "AlianzaHistoricaID": ["X1", "X1", ""],
        })
        assert as_tuples(records_from_frame(df)) == [
            ("PARTIDO A", "Ana", 450),
            ("PARTIDO B", "Luis", 450),
            ("PARTIDO C", "Eva", 700),
        ]

    def test_unparseable_and_negative_rows_dropped(self):
        df = pd.DataFrame({
            "UnidadPolitica": ["Partido A", "Partido A", "Partido B"],
            "Candidato": ["Ana", "Luis", "Eva"],
            "Votos": ["abc", -5, 40],
        })
        assert as_tuples(records_from_frame(df)) == [("PARTIDO B", "Eva", 40)]

    def test_no_valid_rows(self):
        df = pd.DataFrame({"UnidadPolitica": [""], "Candidato": ["VOTOS NULOS"], "Votos": [5]})
        payload = records_from_frame(df)
        assert payload.records == []
        assert payload.invalid_votes.null_votes == 5

    def test_missing_columns(self):
        with pytest.raises(InvalidParameterError) as exc:
            records_from_frame(pd.DataFrame({"Candidato": ["Ana"]}))
        assert exc.value.value == ["UnidadPolitica", "Votos"]
