"""Erreurs de validation du moteur électoral.

Toutes les erreurs sont des défauts d'entrée ou d'insuffisance de données :
aucune n'est transitoire, aucune n'est réessayée.
"""

from __future__ import annotations

from typing import Any, Optional


class ElectoralEngineError(ValueError):
    """Base des erreurs du moteur ; porte le champ fautif et la valeur observée."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class EmptyDatasetError(ElectoralEngineError):
    """Aucun enregistrement avec des votes positifs."""


class InvalidSeatCountError(ElectoralEngineError):
    """Nombre de curules ≤ 0."""


class NoVotesError(ElectoralEngineError):
    """Total des votes nul sur l'ensemble des partis."""


class InvalidIterationCountError(ElectoralEngineError):
    """Nombre d'itérations Monte Carlo hors bornes."""


class UnknownFragmentationUnitError(ElectoralEngineError):
    """L'unité à fragmenter est absente du classement."""


class InvalidParameterError(ElectoralEngineError):
    """Paramètre numérique invalide (votes négatifs, diviseur < 1, ...)."""


class CoalitionError(ElectoralEngineError):
    """Impossible d'estimer la composition d'une coalition."""


class TransferModelError(ElectoralEngineError):
    """Impossible de construire ou d'appliquer un modèle de transfert de voix."""


class SimulationCancelled(Exception):
    """La simulation a été annulée : aucun résultat n'est produit."""

    def __init__(self, completed_batches: int = 0, total_batches: int = 0) -> None:
        super().__init__(
            f"Simulation annulée après {completed_batches}/{total_batches} lots."
        )
        self.completed_batches = completed_batches
        self.total_batches = total_batches
