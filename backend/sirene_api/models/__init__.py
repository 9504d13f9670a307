# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from sirene_api.models.user import User  # noqa: F401  référencé par les colonnes valide_par
from sirene_api.models.ecole import Ville, Ecole, Site  # noqa: F401
from sirene_api.models.sirene import Sirene, Technicien  # noqa: F401
from sirene_api.models.reparation import (  # noqa: F401
    Panne, OrdreMission, MissionTechnicien, Intervention, RapportIntervention,
)
from sirene_api.models.abonnement import Abonnement, Paiement, TokenSirene  # noqa: F401
from sirene_api.models.otp import OtpCode  # noqa: F401
from sirene_api.models.notification import Notification  # noqa: F401
from sirene_api.models.calendrier import CalendrierScolaire, JourFerie, Programmation  # noqa: F401
