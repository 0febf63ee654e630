"""Paramètres de simulation de scénario : valeur immuable, sérialisable.

Les surcharges éparses (appui local, force de campagne) sont des dict
unité → niveau : la dernière écriture pour une unité l'emporte.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Type, TypeVar

from colombia_elections.config import (
    LOCAL_SUPPORT_FACTORS,
    CAMPAIGN_STRENGTH_FACTORS,
    COATTAIL_FACTORS,
    MC_DEFAULT_ITERATIONS,
    MC_DEFAULT_THRESHOLD,
)
from colombia_elections.errors import InvalidParameterError


class LocalSupportLevel(Enum):
    """Appui de structures locales (élus, leaders de quartier)."""
    NULO = "Nulo"
    BAJO = "Bajo"
    MEDIO = "Medio"
    ALTO = "Alto"

    @property
    def factor(self) -> float:
        return LOCAL_SUPPORT_FACTORS[self.value]


class CampaignStrengthLevel(Enum):
    BAJA = "Baja"
    MEDIA = "Media"
    ALTA = "Alta"

    @property
    def factor(self) -> float:
        return CAMPAIGN_STRENGTH_FACTORS[self.value]


class CoattailStrength(Enum):
    """Effet d'entraînement d'une candidature exécutive (gobernación, alcaldía)."""
    NULO = "Nulo"
    MODERADO = "Moderado"
    FUERTE = "Fuerte"

    @property
    def factor(self) -> float:
        return COATTAIL_FACTORS[self.value]


E = TypeVar("E", bound=Enum)


def _coerce_level(enum_cls: Type[E], value: Any, field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidParameterError(
            f"Niveau inconnu pour {field_name} : {value!r} (attendu : {allowed})",
            field=field_name, value=value,
        ) from None


def _coerce_levels(enum_cls: Type[E], levels: Mapping[str, Any], field_name: str) -> Mapping[str, E]:
    return MappingProxyType({
        unit: _coerce_level(enum_cls, level, field_name)
        for unit, level in levels.items()
    })


@dataclass(frozen=True)
class CoattailEffect:
    """Bonus appliqué à une seule unité désignée."""
    unit: str
    strength: CoattailStrength = CoattailStrength.NULO

    def __post_init__(self):
        object.__setattr__(
            self, "strength", _coerce_level(CoattailStrength, self.strength, "coattail_effect"),
        )


@dataclass(frozen=True)
class SimulationParams:
    """Hypothèses d'un scénario.

    Attributes:
        fragmentation_unit: unité dont les voix sont réparties entre
            `num_candidates` nouveaux candidats (None = pas de fragmentation).
        num_candidates: diviseur de la fragmentation (≥ 1).
        government_parties: unités soumises à la pénalité de gouvernement.
        threshold: voix projetées minimales pour obtenir la curul (Monte Carlo).
        monte_carlo_iterations: nombre d'essais (1 à 100 000).
        local_support: dict unité → LocalSupportLevel.
        campaign_strength: dict unité → CampaignStrengthLevel.
        coattail_effect: effet d'entraînement optionnel.
    """
    fragmentation_unit: Optional[str] = None
    num_candidates: int = 1
    government_parties: FrozenSet[str] = frozenset()
    threshold: float = MC_DEFAULT_THRESHOLD
    monte_carlo_iterations: int = MC_DEFAULT_ITERATIONS
    local_support: Mapping[str, LocalSupportLevel] = field(default_factory=dict)
    campaign_strength: Mapping[str, CampaignStrengthLevel] = field(default_factory=dict)
    coattail_effect: Optional[CoattailEffect] = None

    def __post_init__(self):
        object.__setattr__(self, "fragmentation_unit", self.fragmentation_unit or None)
        object.__setattr__(self, "government_parties", frozenset(self.government_parties))
        object.__setattr__(
            self, "local_support",
            _coerce_levels(LocalSupportLevel, self.local_support, "local_support"),
        )
        object.__setattr__(
            self, "campaign_strength",
            _coerce_levels(CampaignStrengthLevel, self.campaign_strength, "campaign_strength"),
        )

    # --- Variantes (analyse de sensibilité) ---

    def variant(self, **kwargs) -> SimulationParams:
        """Crée une variante de ces paramètres avec des modifications."""
        return replace(self, **kwargs)

    def with_local_support(self, unit: str, level: Any) -> SimulationParams:
        return replace(self, local_support={**self.local_support, unit: level})

    def without_local_support(self, unit: str) -> SimulationParams:
        return replace(
            self, local_support={u: l for u, l in self.local_support.items() if u != unit},
        )

    def with_campaign_strength(self, unit: str, level: Any) -> SimulationParams:
        return replace(self, campaign_strength={**self.campaign_strength, unit: level})

    def without_campaign_strength(self, unit: str) -> SimulationParams:
        return replace(
            self, campaign_strength={u: l for u, l in self.campaign_strength.items() if u != unit},
        )

    def with_government_parties(self, units: Iterable[str]) -> SimulationParams:
        return replace(self, government_parties=frozenset(units))

    # --- Sérialisation ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fragmentation_unit": self.fragmentation_unit,
            "num_candidates": self.num_candidates,
            "government_parties": sorted(self.government_parties),
            "threshold": self.threshold,
            "monte_carlo_iterations": self.monte_carlo_iterations,
            "local_support": {u: l.value for u, l in self.local_support.items()},
            "campaign_strength": {u: l.value for u, l in self.campaign_strength.items()},
            "coattail_effect": (
                {"unit": self.coattail_effect.unit, "strength": self.coattail_effect.strength.value}
                if self.coattail_effect else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimulationParams:
        data = dict(data)
        coattail = data.pop("coattail_effect", None)
        if coattail:
            data["coattail_effect"] = CoattailEffect(**coattail)
        return cls(**data)

    def to_json(self, path: Optional[str] = None) -> str:
        """Sérialise les paramètres en JSON.

        Args:
            path: chemin du fichier (optionnel).

        Returns:
            Chaîne JSON.
        """
        s = json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
        if path:
            Path(path).write_text(s, encoding="utf-8")
        return s

    @classmethod
    def from_json(cls, json_str: Optional[str] = None, path: Optional[str] = None) -> SimulationParams:
        """Désérialise des paramètres depuis JSON.

        Args:
            json_str: chaîne JSON.
            path: chemin du fichier.
        """
        if path:
            json_str = Path(path).read_text(encoding="utf-8")
        if json_str is None:
            raise ValueError("json_str ou path requis.")
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> SimulationParams:
        """Construit les paramètres depuis l'état du formulaire de l'interface.

        Clés camelCase ; `localSupport` et `campaignStrength` sont des listes
        de {unit, level} (dernière écriture gagnante par unité).
        """
        coattail = form.get("coattailEffect") or {}
        coattail_effect = None
        if coattail.get("unit"):
            coattail_effect = CoattailEffect(
                unit=coattail["unit"], strength=coattail.get("strength", "Nulo"),
            )
        return cls(
            fragmentation_unit=form.get("fragmentationUnit") or None,
            num_candidates=int(form.get("numCandidates", 1)),
            government_parties=frozenset(form.get("governmentParties", ())),
            threshold=float(form.get("threshold", MC_DEFAULT_THRESHOLD)),
            monte_carlo_iterations=int(form.get("monteCarloIterations", MC_DEFAULT_ITERATIONS)),
            local_support={e["unit"]: e["level"] for e in form.get("localSupport", ())},
            campaign_strength={e["unit"]: e["level"] for e in form.get("campaignStrength", ())},
            coattail_effect=coattail_effect,
        )
