"""
Views (lecture) pour le pattern CQRS.

Les views lisent l'instantané validé et le présentent sous forme de
dictionnaires prêts à sérialiser, sans passer par le message bus.
Tout ce qui est dérivé (disponible, statut, libellés de substitution)
est recalculé à chaque lecture par inventaire.domain.calculs.
"""

from __future__ import annotations

import dataclasses
import enum
from datetime import date, datetime
from typing import Optional

from inventaire.domain import calculs, model
from inventaire.service_layer import unit_of_work


def _instantané(uow: unit_of_work.AbstractUnitOfWork) -> model.Inventaire:
    with uow:
        return uow.inventaires.get()


def _sérialisable(valeur):
    if isinstance(valeur, enum.Enum):
        return valeur.value
    if isinstance(valeur, (datetime, date)):
        return valeur.isoformat()
    if isinstance(valeur, dict):
        return {clé: _sérialisable(v) for clé, v in valeur.items()}
    return valeur


def _en_dict(objet) -> dict:
    return {clé: _sérialisable(v) for clé, v in dataclasses.asdict(objet).items()}


def _ligne_produit(produit: model.Produit, mouvements) -> dict:
    entrées = sum(
        m.quantité for m in mouvements
        if m.produit_id == produit.id and m.type == model.TypeMouvement.ENTREE
    )
    sorties = sum(
        m.quantité for m in mouvements
        if m.produit_id == produit.id and m.type == model.TypeMouvement.SORTIE
    )
    disponible = calculs.stock_disponible(produit, mouvements)
    return {
        **_en_dict(produit),
        "entrées": entrées,
        "sorties": sorties,
        "disponible": disponible,
        "statut": calculs.classer_disponible(disponible, produit.seuil).value,
    }


# --- Produits ---


def produits(
    uow: unit_of_work.AbstractUnitOfWork,
    recherche: str = "",
    tri: str = "création",
    ordre: str = "asc",
    page: int = 1,
    limite: int = 50,
) -> dict:
    """Catalogue filtré, trié et paginé, avec le stock calculé de chaque produit."""
    inventaire = _instantané(uow)
    trouvés = calculs.filtrer_produits(inventaire.produits, recherche)
    triés = calculs.trier_produits(trouvés, inventaire.mouvements, tri, ordre)
    résultat = calculs.paginer(triés, page, limite)
    return {
        "données": [_ligne_produit(p, inventaire.mouvements) for p in résultat.éléments],
        "total": résultat.total,
        "page": résultat.page,
        "limite": résultat.limite,
        "page_suivante": résultat.page_suivante,
    }


def produit(produit_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    inventaire = _instantané(uow)
    trouvé = inventaire.produit(produit_id)
    if trouvé is None:
        return None
    return _ligne_produit(trouvé, inventaire.mouvements)


def alertes(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    inventaire = _instantané(uow)
    return [
        _en_dict(ligne)
        for ligne in calculs.produits_en_alerte(inventaire.produits, inventaire.mouvements)
    ]


# --- Techniciens ---


def techniciens(uow: unit_of_work.AbstractUnitOfWork) -> list[dict]:
    return [_en_dict(t) for t in _instantané(uow).techniciens]


# --- Mouvements ---


def mouvements(
    uow: unit_of_work.AbstractUnitOfWork,
    filtre: calculs.FiltreMouvements = calculs.FiltreMouvements(),
) -> list[dict]:
    """Registre filtré, du plus récent au plus ancien, avec les noms joints."""
    inventaire = _instantané(uow)
    noms_produits = {p.id: p.nom for p in inventaire.produits}
    noms_techniciens = {t.id: t.nom for t in inventaire.techniciens}
    trouvés = sorted(
        calculs.filtrer_mouvements(inventaire.mouvements, filtre),
        key=lambda m: m.créé_le,
        reverse=True,
    )
    lignes = []
    for mouvement in trouvés:
        ligne = _en_dict(mouvement)
        ligne["nom_produit"] = noms_produits.get(mouvement.produit_id, calculs.PRODUIT_SUPPRIMÉ)
        if mouvement.technicien_id is not None:
            ligne["nom_technicien"] = noms_techniciens.get(
                mouvement.technicien_id, calculs.TECHNICIEN_INCONNU
            )
        elif mouvement.type == model.TypeMouvement.SORTIE:
            ligne["nom_technicien"] = calculs.TECHNICIEN_INCONNU
        else:
            ligne["nom_technicien"] = None
        lignes.append(ligne)
    return lignes


def consommation(
    uow: unit_of_work.AbstractUnitOfWork,
    filtre: calculs.FiltreMouvements = calculs.FiltreMouvements(),
) -> list[dict]:
    """Sorties par technicien, la plus récente en tête."""
    inventaire = _instantané(uow)
    retenus = calculs.filtrer_mouvements(inventaire.mouvements, filtre)
    return [
        _en_dict(ligne)
        for ligne in calculs.lignes_consommation_techniciens(
            retenus, inventaire.produits, inventaire.techniciens
        )
    ]


# --- Prêts d'outils ---


def prêts_outils(
    uow: unit_of_work.AbstractUnitOfWork,
    recherche: str = "",
    maintenant: Optional[datetime] = None,
) -> dict:
    """Outils prêtés et outils disponibles, chacun dans l'ordre du parc."""
    inventaire = _instantané(uow)
    maintenant = maintenant or datetime.now()
    lignes = calculs.filtrer_lignes_prêts(
        calculs.lignes_prêts_outils(inventaire.prêts, inventaire.techniciens),
        recherche,
    )
    prêtés, disponibles = calculs.partitionner_par_disponibilité(lignes)

    def avec_retard(ligne: calculs.LignePrêt) -> dict:
        résultat = _en_dict(ligne)
        résultat["en_retard"] = calculs.est_en_retard(inventaire.prêt(ligne.prêt_id), maintenant)
        return résultat

    return {
        "en_prêt": [avec_retard(l) for l in prêtés],
        "disponibles": [avec_retard(l) for l in disponibles],
    }


def prêt_outil(prêt_id: str, uow: unit_of_work.AbstractUnitOfWork) -> Optional[dict]:
    trouvé = _instantané(uow).prêt(prêt_id)
    return _en_dict(trouvé) if trouvé else None


# --- Tableau de bord ---


def tableau_de_bord(
    uow: unit_of_work.AbstractUnitOfWork,
    maintenant: Optional[datetime] = None,
) -> dict:
    statistiques = calculs.statistiques_tableau_de_bord(
        _instantané(uow), maintenant or datetime.now()
    )
    return _en_dict(statistiques)
