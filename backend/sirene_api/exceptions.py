"""
Erreurs métier levées par les services.

Toutes dérivent de ValueError : les services lèvent des erreurs de valeur,
main.py les convertit en réponses HTTP (404 / 400 / 422).
"""


class DomainError(ValueError):
    """Base des erreurs métier."""

    status_code = 400


class NotFoundError(DomainError):
    """Entité référencée introuvable (ou supprimée logiquement)."""

    status_code = 404


class ConflictError(DomainError):
    """Action en doublon ou incompatible avec l'état courant."""

    status_code = 400


class InvalidTransitionError(ConflictError):
    """Transition de statut non autorisée par la table de transitions."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            f"Transition {entity} impossible : '{current}' → '{target}'."
        )


class BusinessRuleError(DomainError):
    """Entrée bien formée mais contraire à une règle métier."""

    status_code = 422
