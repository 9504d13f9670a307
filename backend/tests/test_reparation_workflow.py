"""
Tests du workflow de réparation sur une base SQLite en mémoire :
panne → ordre de mission → candidatures → intervention → rapport → notations.
"""

import uuid

import pytest
from sqlalchemy import func, select

from sirene_api.database import atomic
from sirene_api.exceptions import BusinessRuleError, ConflictError, InvalidTransitionError, NotFoundError
from sirene_api.models.notification import Notification
from sirene_api.models.reparation import Intervention, MissionTechnicien, OrdreMission
from sirene_api.schemas.intervention import NoteIntervention, NoteRapport, RapportCreate
from sirene_api.schemas.ordre_mission import OrdreMissionCreate
from sirene_api.schemas.panne import PanneCreate
from sirene_api.services import intervention_service, ordre_mission_service, panne_service


# --- Helpers ---

def declarer(db, parc, **kwargs):
    data = PanneCreate(description=kwargs.get("description", "La sirène ne sonne plus"))
    return panne_service.declarer_panne(db, parc.sirene.id, data, kwargs.get("admin_ids", [parc.admin.id]))


def ordre_de(db, panne_id):
    return db.execute(select(OrdreMission).where(OrdreMission.panne_id == panne_id)).scalar()


def panne_validee(db, parc):
    panne = declarer(db, parc)
    panne_service.valider_panne(db, panne.id, parc.admin.id)
    return ordre_de(db, panne.id)


def rapport_data(**kwargs):
    return RapportCreate(
        rapport=kwargs.get("rapport", "Carte relais remplacée, tests de sonnerie concluants."),
        resultat=kwargs.get("resultat", "resolu"),
    )


def count_notifications(db, destinataire_type):
    return db.execute(
        select(func.count(Notification.id)).where(Notification.destinataire_type == destinataire_type)
    ).scalar()


# --- Déclaration ---

def test_declarer_panne_rattachee_au_site(db, parc):
    panne = declarer(db, parc)
    assert panne.statut == "en_attente"
    assert panne.site_id == parc.site.id
    assert panne.priorite == "moyenne"
    assert count_notifications(db, "user") == 1


def test_declarer_panne_sirene_inconnue(db, parc):
    with pytest.raises(NotFoundError):
        panne_service.declarer_panne(db, uuid.uuid4(), PanneCreate(description="x"))


def test_declarer_panne_sirene_non_installee(db, parc):
    with pytest.raises(ConflictError, match="aucun site"):
        panne_service.declarer_panne(db, parc.stock.id, PanneCreate(description="Ne s'allume pas"))


# --- Validation et ordre de mission ---

def test_validation_genere_un_seul_ordre(db, parc):
    panne = declarer(db, parc)
    validee = panne_service.valider_panne(db, panne.id, parc.admin.id)

    assert validee.statut == "validee"
    assert validee.valide_par == parc.admin.id
    ordres = db.execute(select(OrdreMission).where(OrdreMission.panne_id == panne.id)).scalars().all()
    assert len(ordres) == 1
    assert ordres[0].ville_id == parc.ville.id
    assert ordres[0].statut == "en_attente"
    assert ordres[0].numero_ordre.startswith("OM-")


def test_validation_notifie_les_techniciens_de_la_ville(db, parc):
    panne_validee(db, parc)
    assert count_notifications(db, "technicien") == 2


def test_double_validation_refusee(db, parc):
    panne = declarer(db, parc)
    panne_service.valider_panne(db, panne.id, parc.admin.id)
    with pytest.raises(InvalidTransitionError):
        panne_service.valider_panne(db, panne.id, parc.admin.id)
    assert db.execute(select(func.count(OrdreMission.id))).scalar() == 1


def test_ordre_manuel_refuse_si_deja_genere(db, parc):
    ordre = panne_validee(db, parc)
    with pytest.raises(ConflictError):
        ordre_mission_service.creer_ordre_mission(
            db, OrdreMissionCreate(panne_id=ordre.panne_id, valide_par=parc.admin.id),
        )


def test_ordre_manuel_valide_la_panne_en_attente(db, parc):
    panne = declarer(db, parc)
    ordre = ordre_mission_service.creer_ordre_mission(
        db, OrdreMissionCreate(panne_id=panne.id, valide_par=parc.admin.id, nombre_techniciens_requis=2),
    )
    assert ordre.nombre_techniciens_requis == 2
    assert panne_service.get_panne(db, panne.id).statut == "validee"


def test_lister_par_ville_ne_montre_que_les_ordres_ouverts(db, parc):
    ordre = panne_validee(db, parc)
    assert [o.id for o in ordre_mission_service.lister_par_ville(db, parc.ville.id)] == [ordre.id]
    ordre_mission_service.cloturer_ordre(db, ordre.id)
    assert ordre_mission_service.lister_par_ville(db, parc.ville.id) == []


# --- Candidatures ---

def test_candidature_en_doublon_refusee(db, parc):
    ordre = panne_validee(db, parc)
    intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    with pytest.raises(ConflictError, match="déjà une candidature"):
        intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)


def test_candidature_refusee_si_cloturee(db, parc):
    ordre = panne_validee(db, parc)
    ordre_mission_service.cloturer_candidatures(db, ordre.id, parc.admin.id)
    with pytest.raises(ConflictError, match="clôturées"):
        intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)

    ordre_mission_service.rouvrir_candidatures(db, ordre.id, parc.admin.id)
    candidature = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    assert candidature.statut == "en_attente"


def test_une_seule_candidature_acceptee_par_ordre(db, parc):
    ordre = panne_validee(db, parc)
    cand_a = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    cand_b = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_b.id)

    intervention = intervention_service.accepter_candidature(db, cand_a.id, parc.admin.id)
    assert intervention.statut == "assignee"
    assert intervention.technicien_id == parc.tech_a.id

    with pytest.raises(ConflictError, match="déjà été acceptée"):
        intervention_service.accepter_candidature(db, cand_b.id, parc.admin.id)

    ordre_maj = ordre_mission_service.get_ordre_mission(db, ordre.id)
    assert ordre_maj.statut == "en_cours"
    assert ordre_maj.technicien_id == parc.tech_a.id
    assert db.execute(select(func.count(Intervention.id))).scalar() == 1
    candidatures = {c.id: c.statut for c in ordre_mission_service.lister_candidatures(db, ordre.id)}
    assert candidatures == {cand_a.id: "acceptee", cand_b.id: "en_attente"}


def test_candidature_refusee_apres_acceptation(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention_service.accepter_candidature(db, cand.id, parc.admin.id)
    with pytest.raises(ConflictError):
        intervention_service.soumettre_candidature(db, ordre.id, parc.tech_b.id)


def test_retrait_sans_motif_refuse(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    with pytest.raises(BusinessRuleError):
        intervention_service.retirer_candidature(db, cand.id, "   ")

    retiree = intervention_service.retirer_candidature(db, cand.id, "Indisponible cette semaine")
    assert retiree.statut == "retiree"
    assert retiree.motif_retrait == "Indisponible cette semaine"


def test_retrait_libere_une_nouvelle_candidature(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention_service.retirer_candidature(db, cand.id, "Erreur de saisie")
    nouvelle = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    assert nouvelle.id != cand.id


def test_refus_puis_acceptation_impossible(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention_service.refuser_candidature(db, cand.id, parc.admin.id)
    with pytest.raises(InvalidTransitionError):
        intervention_service.accepter_candidature(db, cand.id, parc.admin.id)


# --- Intervention et rapport ---

def test_scenario_complet(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id, [parc.admin.id])
    intervention = intervention_service.accepter_candidature(db, cand.id, parc.admin.id)

    with pytest.raises(ConflictError, match="terminée"):
        intervention_service.noter_intervention(db, intervention.id, NoteIntervention(note=4))

    demarree = intervention_service.demarrer_intervention(db, intervention.id)
    assert demarree.statut == "en_cours"
    assert demarree.date_debut is not None

    rapport = intervention_service.rediger_rapport(db, intervention.id, rapport_data())
    assert rapport.statut == "brouillon"
    assert intervention_service.get_intervention(db, intervention.id).statut == "terminee"
    assert ordre_mission_service.get_ordre_mission(db, ordre.id).statut == "termine"
    assert count_notifications(db, "ecole") == 1

    notee = intervention_service.noter_intervention(
        db, intervention.id, NoteIntervention(note=5, commentaire="Rapide et efficace"),
    )
    assert notee.note_ecole == 5

    valide = intervention_service.noter_rapport(db, rapport.id, NoteRapport(note=4, review="Rapport complet"))
    assert valide.statut == "valide"
    assert valide.review_note == 4
    with pytest.raises(InvalidTransitionError):
        intervention_service.noter_rapport(db, rapport.id, NoteRapport(note=3, review="Encore"))

    panne = panne_service.cloturer_panne(db, ordre.panne_id)
    assert panne.statut == "cloturee"
    assert ordre_mission_service.get_ordre_mission(db, ordre.id).statut == "cloture"


def test_rapport_avant_demarrage_refuse(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention = intervention_service.accepter_candidature(db, cand.id, parc.admin.id)
    with pytest.raises(InvalidTransitionError):
        intervention_service.rediger_rapport(db, intervention.id, rapport_data())
    assert intervention_service.get_rapport(db, intervention.id) is None


def test_cloturer_panne_cloture_l_ordre_ouvert(db, parc):
    ordre = panne_validee(db, parc)
    panne_service.cloturer_panne(db, ordre.panne_id)
    assert ordre_mission_service.get_ordre_mission(db, ordre.id).statut == "cloture"


def test_cloturer_panne_refuse_pendant_l_intervention(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention = intervention_service.accepter_candidature(db, cand.id, parc.admin.id)
    intervention_service.demarrer_intervention(db, intervention.id)

    with pytest.raises(ConflictError, match="intervention est en cours"):
        panne_service.cloturer_panne(db, ordre.panne_id)
    assert panne_service.get_panne(db, ordre.panne_id).statut == "validee"
    assert ordre_mission_service.get_ordre_mission(db, ordre.id).statut == "en_cours"

    intervention_service.rediger_rapport(db, intervention.id, rapport_data())
    assert panne_service.cloturer_panne(db, ordre.panne_id).statut == "cloturee"
    assert ordre_mission_service.get_ordre_mission(db, ordre.id).statut == "cloture"


# --- Suppression ---

def test_supprimer_ordre_en_attente(db, parc):
    ordre = panne_validee(db, parc)
    ordre_mission_service.supprimer_ordre(db, ordre.id)
    assert ordre_mission_service.get_ordre_mission(db, ordre.id) is None


def test_supprimer_ordre_avec_technicien_refuse(db, parc):
    ordre = panne_validee(db, parc)
    cand = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    intervention_service.accepter_candidature(db, cand.id, parc.admin.id)
    with pytest.raises(ConflictError):
        ordre_mission_service.supprimer_ordre(db, ordre.id)


# --- Contraintes en base ---

def test_deux_candidatures_acceptees_refusees_par_la_base(db, parc):
    ordre = panne_validee(db, parc)
    cand_a = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_a.id)
    cand_b = intervention_service.soumettre_candidature(db, ordre.id, parc.tech_b.id)
    intervention_service.accepter_candidature(db, cand_a.id, parc.admin.id)

    with pytest.raises(ConflictError):
        with atomic(db, "forcer_candidature"):
            db.get(MissionTechnicien, cand_b.id).statut = "acceptee"
            db.flush()

    assert db.get(MissionTechnicien, cand_b.id).statut == "en_attente"
    acceptees = db.execute(
        select(func.count(MissionTechnicien.id)).where(MissionTechnicien.statut == "acceptee")
    ).scalar()
    assert acceptees == 1
