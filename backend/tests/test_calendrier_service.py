"""
Tests des calendriers scolaires, des jours fériés et des programmations effectives.
La semaine de référence commence le lundi 1er septembre 2025.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from sirene_api.exceptions import BusinessRuleError, NotFoundError
from sirene_api.models.calendrier import JourFerie
from sirene_api.models.ecole import Ecole
from sirene_api.schemas.calendrier import (
    CalendrierCreate,
    CalendrierUpdate,
    JourFerieCreate,
    JourFerieUpdate,
    ProgrammationCreate,
    ProgrammationUpdate,
)
from sirene_api.services import calendrier_service, jour_ferie_service, programmation_service

LUNDI = date(2025, 9, 1)
MERCREDI_FERIE = date(2025, 9, 3)
SAMEDI = date(2025, 9, 6)
LUNDI_SUIVANT = date(2025, 9, 8)
JEUDI_VACANCES = date(2025, 9, 11)


# --- Helpers ---

def creer_calendrier(db, **kwargs):
    return calendrier_service.creer_calendrier(db, CalendrierCreate(
        annee_scolaire=kwargs.get("annee_scolaire", "2025-2026"),
        date_rentree=kwargs.get("date_rentree", LUNDI),
        date_fin_annee=kwargs.get("date_fin_annee", date(2025, 9, 14)),
        periodes_vacances=kwargs.get("periodes_vacances", [
            {"nom": "Pause de septembre", "date_debut": "2025-09-10", "date_fin": "2025-09-12"},
        ]),
    ))


def creer_ferie(db, **kwargs):
    return jour_ferie_service.creer_jour_ferie(db, JourFerieCreate(
        intitule_journee=kwargs.get("intitule_journee", "Fête locale"),
        date_debut=kwargs.get("date_debut", MERCREDI_FERIE),
        date_fin=kwargs.get("date_fin"),
        est_national=kwargs.get("est_national", True),
        recurrent=kwargs.get("recurrent", False),
        ecole_id=kwargs.get("ecole_id"),
        calendrier_id=kwargs.get("calendrier_id"),
    ))


def creer_programmation(db, parc, calendrier_id=None, **kwargs):
    horaires = [
        {"jour": jour, "heure": heure}
        for jour in ("Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi")
        for heure in ("12:00", "07:30")
    ]
    return programmation_service.creer_programmation(db, ProgrammationCreate(
        sirene_id=parc.sirene.id,
        calendrier_id=calendrier_id,
        nom_programmation=kwargs.get("nom_programmation", "Horaires de classe"),
        horaire_json=horaires,
        jours_feries_inclus=kwargs.get("jours_feries_inclus", False),
        jours_feries_exceptions=kwargs.get("jours_feries_exceptions", []),
        date_debut=date(2025, 9, 1),
        date_fin=date(2026, 7, 31),
    ))


def heures(db, parc, jour):
    return [h for e in programmation_service.programmations_effectives(db, parc.sirene.id, jour) for h in e.heures]


# --- Jours fériés : couverture ---

def test_couvre_jour_unique():
    jf = JourFerie(date_debut=date(2025, 8, 1), date_fin=None, recurrent=False)
    assert jour_ferie_service.couvre(jf, date(2025, 8, 1))
    assert not jour_ferie_service.couvre(jf, date(2025, 8, 2))
    assert not jour_ferie_service.couvre(jf, date(2026, 8, 1))


def test_couvre_recurrent_chaque_annee():
    jf = JourFerie(date_debut=date(2020, 12, 25), date_fin=None, recurrent=True)
    assert jour_ferie_service.couvre(jf, date(2025, 12, 25))
    assert not jour_ferie_service.couvre(jf, date(2025, 12, 26))


def test_couvre_recurrent_a_cheval_sur_l_annee():
    jf = JourFerie(date_debut=date(2020, 12, 31), date_fin=date(2021, 1, 2), recurrent=True)
    assert jour_ferie_service.couvre(jf, date(2026, 1, 1))
    assert jour_ferie_service.couvre(jf, date(2025, 12, 31))
    assert not jour_ferie_service.couvre(jf, date(2026, 1, 3))


def test_couvre_29_fevrier_annee_non_bissextile():
    jf = JourFerie(date_debut=date(2024, 2, 29), date_fin=None, recurrent=True)
    assert jour_ferie_service.couvre(jf, date(2025, 2, 28))


def test_jour_ferie_dates_incoherentes():
    with pytest.raises(ValidationError):
        JourFerieCreate(intitule_journee="X", date_debut=date(2025, 5, 2), date_fin=date(2025, 5, 1))


# --- Jours fériés : portée ---

def test_ferie_national_s_applique_partout(db, parc):
    creer_ferie(db)
    assert jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE)
    assert jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE, ecole_id=parc.ecole.id)


def test_ferie_d_une_autre_ecole_ignore(db, parc):
    autre = Ecole(nom="Collège voisin", telephone_contact="+22990000001")
    db.add(autre)
    db.commit()
    creer_ferie(db, est_national=False, ecole_id=autre.id)

    assert not jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE, ecole_id=parc.ecole.id)
    assert jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE, ecole_id=autre.id)


def test_ferie_d_un_autre_calendrier_ignore(db, parc):
    calendrier = creer_calendrier(db)
    autre = creer_calendrier(db, annee_scolaire="2024-2025")
    creer_ferie(db, est_national=False, calendrier_id=autre.id)
    assert not jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE, calendrier_id=calendrier.id)


def test_ferie_inactif_ou_supprime_ignore(db, parc):
    ferie = creer_ferie(db)
    jour_ferie_service.mettre_a_jour(db, ferie.id, JourFerieUpdate(actif=False))
    assert not jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE)

    jour_ferie_service.mettre_a_jour(db, ferie.id, JourFerieUpdate(actif=True))
    jour_ferie_service.supprimer_jour_ferie(db, ferie.id)
    assert not jour_ferie_service.est_jour_ferie(db, MERCREDI_FERIE)
    assert jour_ferie_service.get_jour_ferie(db, ferie.id) is None


def test_mise_a_jour_ferie_dates_incoherentes(db, parc):
    ferie = creer_ferie(db)
    with pytest.raises(BusinessRuleError):
        jour_ferie_service.mettre_a_jour(db, ferie.id, JourFerieUpdate(date_fin=date(2025, 9, 1)))


# --- Calendriers ---

def test_calendrier_annee_mal_formee():
    with pytest.raises(ValidationError, match="AAAA-AAAA"):
        CalendrierCreate(annee_scolaire="2025", date_rentree=LUNDI, date_fin_annee=date(2026, 7, 1))


def test_calendrier_fin_avant_rentree():
    with pytest.raises(ValidationError):
        CalendrierCreate(annee_scolaire="2025-2026", date_rentree=LUNDI, date_fin_annee=LUNDI)


def test_calendrier_periodes_stockees(db, parc):
    calendrier = creer_calendrier(db)
    assert calendrier.periodes_vacances[0].nom == "Pause de septembre"
    assert calendrier.periodes_vacances[0].date_debut == date(2025, 9, 10)


def test_calculer_jours_scolaires(db, parc):
    calendrier = creer_calendrier(db)
    creer_ferie(db)

    jours = calendrier_service.calculer_jours_scolaires(db, calendrier.id)
    assert jours.jours_ouvres == 10
    assert jours.jours_feries == 1
    assert jours.jours_vacances == 3
    assert jours.jours_scolaires == 6


def test_jours_feries_du_calendrier(db, parc):
    calendrier = creer_calendrier(db)
    creer_ferie(db)
    creer_ferie(db, intitule_journee="Hors année", date_debut=date(2025, 11, 1))
    assert [j.intitule_journee for j in calendrier_service.jours_feries(db, calendrier.id)] == ["Fête locale"]


def test_mise_a_jour_calendrier_incoherente(db, parc):
    calendrier = creer_calendrier(db)
    with pytest.raises(BusinessRuleError):
        calendrier_service.mettre_a_jour(db, calendrier.id, CalendrierUpdate(date_fin_annee=date(2025, 8, 1)))


def test_calendrier_supprime_introuvable(db, parc):
    calendrier = creer_calendrier(db)
    calendrier_service.supprimer_calendrier(db, calendrier.id)
    with pytest.raises(NotFoundError):
        calendrier_service.calculer_jours_scolaires(db, calendrier.id)


# --- Programmations ---

def test_programmation_sans_horaire_refusee(parc):
    with pytest.raises(ValidationError, match="horaire"):
        ProgrammationCreate(
            sirene_id=parc.sirene.id, nom_programmation="Vide", horaire_json=[],
            date_debut=LUNDI, date_fin=LUNDI,
        )


def test_programmation_heure_invalide(parc):
    with pytest.raises(ValidationError, match="HH:MM"):
        ProgrammationCreate(
            sirene_id=parc.sirene.id, nom_programmation="Nuit", horaire_json=[{"jour": "Lundi", "heure": "25:00"}],
            date_debut=LUNDI, date_fin=LUNDI,
        )


def test_heures_triees_un_jour_de_classe(db, parc):
    creer_programmation(db, parc)
    assert heures(db, parc, LUNDI) == ["07:30", "12:00"]


def test_aucune_sonnerie_sans_horaire_ce_jour(db, parc):
    creer_programmation(db, parc)
    assert heures(db, parc, SAMEDI) == []


def test_muette_un_jour_ferie(db, parc):
    creer_programmation(db, parc)
    creer_ferie(db)
    assert heures(db, parc, MERCREDI_FERIE) == []


def test_sonne_un_jour_ferie_si_inclus(db, parc):
    creer_programmation(db, parc, jours_feries_inclus=True)
    creer_ferie(db)
    assert heures(db, parc, MERCREDI_FERIE) == ["07:30", "12:00"]


def test_exception_include_l_emporte_sur_le_ferie(db, parc):
    creer_programmation(db, parc, jours_feries_exceptions=[{"date": "2025-09-03", "action": "include"}])
    creer_ferie(db)
    assert heures(db, parc, MERCREDI_FERIE) == ["07:30", "12:00"]


def test_exception_exclude_rend_muette(db, parc):
    creer_programmation(db, parc, jours_feries_exceptions=[{"date": "2025-09-08", "action": "exclude"}])
    assert heures(db, parc, LUNDI_SUIVANT) == []
    assert heures(db, parc, LUNDI) == ["07:30", "12:00"]


def test_muette_pendant_les_vacances(db, parc):
    calendrier = creer_calendrier(db)
    creer_programmation(db, parc, calendrier_id=calendrier.id)
    assert heures(db, parc, JEUDI_VACANCES) == []
    assert heures(db, parc, LUNDI_SUIVANT) == ["07:30", "12:00"]


def test_programmation_inactive_ignoree(db, parc):
    programmation = creer_programmation(db, parc)
    programmation_service.mettre_a_jour(db, programmation.id, ProgrammationUpdate(actif=False))
    assert heures(db, parc, LUNDI) == []


def test_mise_a_jour_dates_incoherentes(db, parc):
    programmation = creer_programmation(db, parc)
    with pytest.raises(BusinessRuleError):
        programmation_service.mettre_a_jour(db, programmation.id, ProgrammationUpdate(date_fin=date(2025, 8, 1)))


def test_lister_et_supprimer(db, parc):
    programmation = creer_programmation(db, parc)
    assert [p.id for p in programmation_service.lister_par_sirene(db, parc.sirene.id)] == [programmation.id]
    programmation_service.supprimer_programmation(db, programmation.id)
    assert programmation_service.lister_par_sirene(db, parc.sirene.id) == []
