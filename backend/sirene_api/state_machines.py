"""
Machines à états explicites des entités du workflow.

Chaque entité a un ensemble fermé de statuts (Enum) et une table de transitions.
Les services n'écrivent jamais un statut directement : ils passent par
`transition()`, qui refuse toute transition absente de la table.
"""

import enum
from typing import Dict, FrozenSet

from sirene_api.exceptions import InvalidTransitionError


class StatutPanne(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    VALIDEE = "validee"
    CLOTUREE = "cloturee"


class StatutOrdreMission(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    EN_COURS = "en_cours"
    TERMINE = "termine"
    CLOTURE = "cloture"


class StatutCandidature(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    ACCEPTEE = "acceptee"
    REFUSEE = "refusee"
    RETIREE = "retiree"


class StatutIntervention(str, enum.Enum):
    ASSIGNEE = "assignee"
    EN_COURS = "en_cours"
    TERMINEE = "terminee"


class StatutRapport(str, enum.Enum):
    BROUILLON = "brouillon"
    VALIDE = "valide"


class StatutAbonnement(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    ACTIF = "actif"
    EXPIRE = "expire"
    SUSPENDU = "suspendu"
    ANNULE = "annule"


class StatutPaiement(str, enum.Enum):
    EN_ATTENTE = "en_attente"
    VALIDE = "valide"


class PrioritePanne(str, enum.Enum):
    FAIBLE = "faible"
    MOYENNE = "moyenne"
    HAUTE = "haute"


class ResultatIntervention(str, enum.Enum):
    RESOLU = "resolu"
    PARTIELLEMENT_RESOLU = "partiellement_resolu"
    NON_RESOLU = "non_resolu"


class MoyenPaiement(str, enum.Enum):
    MOBILE_MONEY = "MOBILE_MONEY"
    CARTE_BANCAIRE = "CARTE_BANCAIRE"
    QR_CODE = "QR_CODE"
    VIREMENT = "VIREMENT"


class StatutSirene(str, enum.Enum):
    DISPONIBLE = "DISPONIBLE"
    INSTALLEE = "INSTALLEE"
    HORS_SERVICE = "HORS_SERVICE"


def _table(pairs) -> Dict[str, FrozenSet[str]]:
    table: Dict[str, set] = {}
    for source, target in pairs:
        table.setdefault(source.value, set()).add(target.value)
    return {k: frozenset(v) for k, v in table.items()}


TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "panne": _table([
        (StatutPanne.EN_ATTENTE, StatutPanne.VALIDEE),
        (StatutPanne.EN_ATTENTE, StatutPanne.CLOTUREE),
        (StatutPanne.VALIDEE, StatutPanne.CLOTUREE),
    ]),
    "ordre_mission": _table([
        (StatutOrdreMission.EN_ATTENTE, StatutOrdreMission.EN_COURS),
        (StatutOrdreMission.EN_ATTENTE, StatutOrdreMission.CLOTURE),
        (StatutOrdreMission.EN_COURS, StatutOrdreMission.TERMINE),
        (StatutOrdreMission.EN_COURS, StatutOrdreMission.CLOTURE),
        (StatutOrdreMission.TERMINE, StatutOrdreMission.CLOTURE),
    ]),
    "candidature": _table([
        (StatutCandidature.EN_ATTENTE, StatutCandidature.ACCEPTEE),
        (StatutCandidature.EN_ATTENTE, StatutCandidature.REFUSEE),
        (StatutCandidature.EN_ATTENTE, StatutCandidature.RETIREE),
    ]),
    "intervention": _table([
        (StatutIntervention.ASSIGNEE, StatutIntervention.EN_COURS),
        (StatutIntervention.EN_COURS, StatutIntervention.TERMINEE),
    ]),
    "rapport": _table([
        (StatutRapport.BROUILLON, StatutRapport.VALIDE),
    ]),
    "abonnement": _table([
        (StatutAbonnement.EN_ATTENTE, StatutAbonnement.ACTIF),
        (StatutAbonnement.EN_ATTENTE, StatutAbonnement.ANNULE),
        (StatutAbonnement.ACTIF, StatutAbonnement.EXPIRE),
        (StatutAbonnement.ACTIF, StatutAbonnement.SUSPENDU),
        (StatutAbonnement.ACTIF, StatutAbonnement.ANNULE),
        (StatutAbonnement.ACTIF, StatutAbonnement.EN_ATTENTE),  # renouvellement
        (StatutAbonnement.SUSPENDU, StatutAbonnement.ACTIF),
        (StatutAbonnement.SUSPENDU, StatutAbonnement.ANNULE),
        (StatutAbonnement.SUSPENDU, StatutAbonnement.EXPIRE),
        (StatutAbonnement.EXPIRE, StatutAbonnement.EN_ATTENTE),  # renouvellement
    ]),
    "paiement": _table([
        (StatutPaiement.EN_ATTENTE, StatutPaiement.VALIDE),
    ]),
}


def _value(statut) -> str:
    return statut.value if isinstance(statut, enum.Enum) else statut


def can_transition(entity: str, current, target) -> bool:
    """Indique si la transition current → target est autorisée pour l'entité."""
    return _value(target) in TRANSITIONS[entity].get(_value(current), frozenset())


def ensure_transition(entity: str, current, target) -> None:
    """Lève InvalidTransitionError si la transition n'est pas dans la table."""
    if not can_transition(entity, current, target):
        raise InvalidTransitionError(entity, _value(current), _value(target))


def transition(entity: str, obj, target, field: str = "statut") -> None:
    """Applique une transition gardée sur l'attribut `field` de l'objet ORM."""
    ensure_transition(entity, getattr(obj, field), target)
    setattr(obj, field, _value(target))
