"""Conversion d'une table de résultats déjà parsée en VoteRecord.

Le parsing des fichiers (CSV, XLSX, PDF) est fait en amont ; ici on reçoit un
DataFrame avec les colonnes du format Registraduría :
  UnidadPolitica, Candidato, Votos  (obligatoires)
  EsCabezaDeLista, Eleccion, Año, AlianzaHistoricaID  (optionnelles)

Règles :
  - lignes "NULOS" / "EN BLANCO" → compteurs de votes non valides
  - noms de partis normalisés (sans accents, majuscules, sans guillemets)
  - tête de liste à la Cámara : voix divisées par 2
  - alliance historique : voix divisées par le nombre d'unités membres
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd

from colombia_elections.config import (
    LIST_ONLY_SENTINEL,
    NULL_VOTES_MARKER,
    BLANK_VOTES_MARKER,
    HEAD_OF_LIST_ELECTION,
    HEAD_OF_LIST_DIVISOR,
)
from colombia_elections.data.schemas import InvalidVoteCounts, VoteRecord
from colombia_elections.errors import InvalidParameterError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("UnidadPolitica", "Candidato", "Votos")

_QUOTES = re.compile(r"['\"“”]")


@dataclass
class RecordsPayload:
    """Résultat de l'ingestion d'une table."""
    records: List[VoteRecord] = field(default_factory=list)
    invalid_votes: InvalidVoteCounts = field(default_factory=InvalidVoteCounts)
    analysis_type: str = "party"  # "candidate" si au moins un candidat nommé


def normalize_party_name(name: str) -> str:
    """Normalise un nom d'unité politique ("Alianza Verde " → "ALIANZA VERDE")."""
    if not isinstance(name, str) or not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _QUOTES.sub("", stripped.upper().strip())


def _optional_column(df: pd.DataFrame, column: str) -> pd.Series:
    if column not in df.columns:
        return pd.Series("", index=df.index, dtype=object)
    return df[column].fillna("").astype(str).str.strip()


def records_from_frame(df: pd.DataFrame) -> RecordsPayload:
    """Construit les VoteRecord à partir d'un DataFrame de résultats.

    Args:
        df: table brute (une ligne par unité / candidat / lieu).

    Returns:
        RecordsPayload (enregistrements, votes blancs/nuls, type d'analyse).
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidParameterError(
            f"Colonnes manquantes : {', '.join(missing)}", field="columns", value=missing,
        )

    frame = df.copy()
    frame["Candidato"] = frame["Candidato"].fillna("").astype(str).str.strip()
    frame["_votes"] = pd.to_numeric(frame["Votos"], errors="coerce")
    frame = frame[(frame["Candidato"] != "") & frame["_votes"].notna()]

    upper = frame["Candidato"].str.upper()
    is_null = upper.str.contains(NULL_VOTES_MARKER, regex=False)
    is_blank = ~is_null & upper.str.contains(BLANK_VOTES_MARKER, regex=False)
    invalid = InvalidVoteCounts(
        null_votes=int(frame.loc[is_null, "_votes"].sum()),
        blank_votes=int(frame.loc[is_blank, "_votes"].sum()),
    )

    valid = frame[~is_null & ~is_blank].copy()
    valid["_unit"] = _optional_column(valid, "UnidadPolitica").map(normalize_party_name)
    valid = valid[valid["_unit"] != ""]

    negative = valid["_votes"] < 0
    if negative.any():
        logger.warning("%d lignes avec des votes négatifs ignorées", int(negative.sum()))
        valid = valid[~negative]

    if valid.empty:
        logger.info("Aucune ligne valide (blancs=%d, nuls=%d)", invalid.blank_votes, invalid.null_votes)
        return RecordsPayload(invalid_votes=invalid)

    # parseInt : troncature des décimales
    votes = np.trunc(valid["_votes"].to_numpy(dtype=float))

    election = _optional_column(valid, "Eleccion")
    head = _optional_column(valid, "EsCabezaDeLista").str.lower() == "true"
    head_divisor = np.where(head & (election == HEAD_OF_LIST_ELECTION), HEAD_OF_LIST_DIVISOR, 1)

    # Alliances historiques : (élection, année, alliance) → nb d'unités distinctes
    alliance = _optional_column(valid, "AlianzaHistoricaID")
    has_alliance = alliance != ""
    keys = election + "|" + _optional_column(valid, "Año") + "|" + alliance
    sizes = valid.loc[has_alliance, "_unit"].groupby(keys[has_alliance]).nunique()
    alliance_divisor = keys.map(sizes).where(has_alliance, 1).fillna(1).to_numpy(dtype=float)

    calculated = np.floor(votes / head_divisor / alliance_divisor + 0.5).astype(int)

    candidates = [
        LIST_ONLY_SENTINEL if normalize_party_name(c) == LIST_ONLY_SENTINEL else c
        for c in valid["Candidato"]
    ]
    records = [
        VoteRecord(
            political_unit=unit,
            candidate=candidate,
            votes=int(v),
            is_head_of_list=bool(h),
        )
        for unit, candidate, v, h in zip(valid["_unit"], candidates, calculated, head)
    ]

    analysis_type = "candidate" if any(c != LIST_ONLY_SENTINEL for c in candidates) else "party"

    logger.info(
        "%d enregistrements valides (%s), blancs=%d, nuls=%d",
        len(records), analysis_type, invalid.blank_votes, invalid.null_votes,
    )
    return RecordsPayload(records=records, invalid_votes=invalid, analysis_type=analysis_type)
