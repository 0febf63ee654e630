"""Constantes électorales et paramètres du moteur (élections colombiennes).

Les bandes numériques des niveaux qualitatifs ("Bajo", "Alta", ...) font
partie du contrat public du moteur.
"""

from __future__ import annotations

from typing import Dict, List, Tuple


# ---------------------------------------------------------------------------
# Données d'entrée
# ---------------------------------------------------------------------------

# Candidat sentinelle : vote "solo por la lista" (logo du parti)
LIST_ONLY_SENTINEL = "SOLO POR LA LISTA"

# Marqueurs des votes non valides dans la colonne Candidato
NULL_VOTES_MARKER = "NULOS"
BLANK_VOTES_MARKER = "EN BLANCO"

# À la Cámara, la voix de la tête de liste est partagée avec la liste
HEAD_OF_LIST_ELECTION = "Cámara"
HEAD_OF_LIST_DIVISOR = 2


# ---------------------------------------------------------------------------
# Curules (sièges)
# ---------------------------------------------------------------------------

DEFAULT_SEATS = 17
# Asamblea départementale et Concejo municipal
DEFAULT_SEATS_BY_ELECTION: Dict[str, int] = {
    "asamblea": 26,
    "concejo": 26,
}


def default_seats(election_type: str = "") -> int:
    """Nombre de curules par défaut selon le type d'élection."""
    return DEFAULT_SEATS_BY_ELECTION.get((election_type or "").strip().lower(), DEFAULT_SEATS)


# ---------------------------------------------------------------------------
# Facteurs de scénario (multiplicateurs)
# ---------------------------------------------------------------------------

LOCAL_SUPPORT_FACTORS: Dict[str, float] = {
    "Nulo": 1.00,
    "Bajo": 1.05,
    "Medio": 1.12,
    "Alto": 1.20,
}

CAMPAIGN_STRENGTH_FACTORS: Dict[str, float] = {
    "Baja": 0.90,
    "Media": 1.00,
    "Alta": 1.15,
}

COATTAIL_FACTORS: Dict[str, float] = {
    "Nulo": 1.00,
    "Moderado": 1.15,
    "Fuerte": 1.25,
}

# Pénalité du parti au gouvernement : perte de 15% à 20%, un tirage par unité
INCUMBENCY_PENALTY_RANGE: Tuple[float, float] = (0.15, 0.20)
# Graine du tirage de la pénalité quand aucune n'est fournie
INCUMBENCY_SEED = 0


# ---------------------------------------------------------------------------
# Monte Carlo
# ---------------------------------------------------------------------------

MC_DEFAULT_ITERATIONS = 5_000
MC_MIN_ITERATIONS = 1
MC_MAX_ITERATIONS = 100_000
MC_DEFAULT_THRESHOLD = 15_000
MC_NOISE_MAGNITUDE = 0.10      # ±10% (uniforme) ou σ = 10% (normal)
MC_BATCH_SIZE = 1_000
MC_SEAT_CONFIDENCE = 0.95


# ---------------------------------------------------------------------------
# Coalitions connues (nom → partis membres)
# ---------------------------------------------------------------------------

KNOWN_COALITIONS: Dict[str, List[str]] = {
    "JUNTOS": ["CAMBIO RADICAL", "MIRA", "PARTIDO DE LA U"],
    "COALICION CAMBIO RADICAL -MIRA": ["PARTIDO CAMBIO RADICAL", "PARTIDO MIRA"],
    "COALICION PARTIDOS CAMBIO RADICAL - COLOMBIA JUSTA LIBRES - MIRA": [
        "PARTIDO CAMBIO RADICAL",
        "COLOMBIA JUSTA LIBRES",
        "PARTIDO MIRA",
    ],
}


# ---------------------------------------------------------------------------
# Transfert de voix (nouveau parti)
# ---------------------------------------------------------------------------

# Spectre ordonné : la distance idéologique est l'écart entre deux positions
IDEOLOGY_SPECTRUM: Tuple[str, ...] = (
    "IZQUIERDA",
    "CENTRO-IZQUIERDA",
    "CENTRO",
    "REGIONALISTA",
    "ATRAPA-TODO",
    "OTRO",
    "RELIGIOSO",
    "CENTRO-DERECHA",
    "DERECHA",
)
DEFAULT_IDEOLOGY = "Otro"
UNKNOWN_IDEOLOGY_DISTANCE = 5

# Part maximale des voix d'un donneur qui peut partir vers le nouveau parti
TRANSFER_VULNERABILITY = 0.65
# Tolérance (en points) sur la somme à 100% d'un modèle saisi à la main
MANUAL_MODEL_TOLERANCE = 0.1

# Nouveaux partis dont les donneurs sont fixés (poids = voix du donneur)
PROPORTIONAL_DONORS: Dict[str, List[str]] = {
    "PARTIDO POLITICO CREEMOS": [
        "PARTIDO CENTRO DEMOCRATICO",
        "PARTIDO LIBERAL COLOMBIANO",
        "PARTIDO CONSERVADOR COLOMBIANO",
        "PARTIDO CAMBIO RADICAL",
        "MIRA",
        "MOVIMIENTO DE SALVACION NACIONAL",
    ],
}
