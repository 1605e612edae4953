"""
Calculs d'état dérivé.

Fonctions pures qui recalculent, à chaque lecture, tout ce qui n'est
pas stocké : stock disponible, statut d'alerte, listes filtrées et
lignes de tableau jointes entre entités. Aucune fonction ne modifie
ses arguments.

Les dates de filtre sont comparées comme des instants : c'est à
l'appelant de ramener une date seule à minuit (début ou fin de
journée) avant de construire le filtre.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence, TypeVar

from inventaire.domain.model import (
    Inventaire,
    Mouvement,
    PrêtOutil,
    Produit,
    StatutPrêt,
    StatutStock,
    Technicien,
    TypeMouvement,
    solde_mouvements,
)

PRODUIT_SUPPRIMÉ = "Produit supprimé"
TECHNICIEN_INCONNU = "Technicien inconnu"
SANS_TECHNICIEN = "Disponible"
STOCK_CENTRAL = "Stock central"

T = TypeVar("T")


# --- Stock ---


def stock_disponible(produit: Produit, mouvements: Iterable[Mouvement]) -> int:
    """
    Quantité initiale + entrées − sorties.

    Aucune borne n'est appliquée : le résultat peut être négatif si
    des sorties ont été enregistrées sans contrôle du disponible.
    """
    return produit.quantité_initiale + solde_mouvements(produit.id, mouvements)


def classer_statut_stock(produit: Produit, mouvements: Iterable[Mouvement]) -> StatutStock:
    return classer_disponible(stock_disponible(produit, mouvements), produit.seuil)


def classer_disponible(disponible: int, seuil: int) -> StatutStock:
    return StatutStock.pour(disponible, seuil)


def filtrer_produits(produits: Sequence[Produit], recherche: str) -> list[Produit]:
    """Recherche insensible à la casse dans le nom ou la catégorie."""
    terme = (recherche or "").strip().lower()
    if not terme:
        return list(produits)
    return [
        p for p in produits
        if terme in p.nom.lower() or terme in p.catégorie.lower()
    ]


def trier_produits(
    produits: Sequence[Produit],
    mouvements: Sequence[Mouvement],
    tri: str = "création",
    ordre: str = "asc",
) -> list[Produit]:
    """
    Trie les produits par nom, par quantité disponible ou par ordre de création.

    L'ordre de création est l'ordre du catalogue lui-même.
    """
    if ordre not in ("asc", "desc"):
        raise ValueError(f"Ordre de tri inconnu : {ordre}")
    inverse = ordre == "desc"
    if tri == "nom":
        return sorted(produits, key=lambda p: p.nom.lower(), reverse=inverse)
    if tri == "quantité":
        return sorted(
            produits,
            key=lambda p: stock_disponible(p, mouvements),
            reverse=inverse,
        )
    if tri == "création":
        return list(reversed(produits)) if inverse else list(produits)
    raise ValueError(f"Critère de tri inconnu : {tri}")


def produits_en_alerte(
    produits: Sequence[Produit], mouvements: Sequence[Mouvement]
) -> list[LigneAlerte]:
    """Produits en ALERTE ou en RUPTURE, les ruptures en premier."""
    lignes = []
    for produit in produits:
        disponible = stock_disponible(produit, mouvements)
        statut = classer_disponible(disponible, produit.seuil)
        if statut != StatutStock.OK:
            lignes.append(
                LigneAlerte(
                    produit_id=produit.id,
                    nom=produit.nom,
                    disponible=disponible,
                    seuil=produit.seuil,
                    statut=statut,
                    message=produit.message_alerte,
                )
            )
    gravité = list(StatutStock)
    return sorted(lignes, key=lambda ligne: gravité.index(ligne.statut))


# --- Mouvements ---


@dataclass(frozen=True)
class FiltreMouvements:
    """
    Critères de filtrage du registre.

    None signifie « tous » pour le technicien et le produit,
    et « pas de borne » pour les dates (bornes inclusives).
    """

    technicien_id: Optional[str] = None
    produit_id: Optional[str] = None
    du: Optional[datetime] = None
    au: Optional[datetime] = None

    def accepte(self, mouvement: Mouvement) -> bool:
        if self.technicien_id is not None and mouvement.technicien_id != self.technicien_id:
            return False
        if self.produit_id is not None and mouvement.produit_id != self.produit_id:
            return False
        if self.du is not None and mouvement.créé_le < self.du:
            return False
        if self.au is not None and mouvement.créé_le > self.au:
            return False
        return True


def filtrer_mouvements(
    mouvements: Iterable[Mouvement], filtre: FiltreMouvements
) -> list[Mouvement]:
    return [m for m in mouvements if filtre.accepte(m)]


@dataclass(frozen=True)
class LigneConsommation:
    mouvement_id: str
    produit_id: str
    nom_produit: str
    technicien_id: str
    nom_technicien: str
    équipe: str
    quantité: int
    créé_le: datetime
    commentaire: Optional[str] = None


def lignes_consommation_techniciens(
    mouvements: Iterable[Mouvement],
    produits: Iterable[Produit],
    techniciens: Iterable[Technicien],
) -> list[LigneConsommation]:
    """
    Une ligne par SORTIE attribuée à un technicien, la plus récente en tête.

    Les références disparues sont remplacées par des libellés de
    substitution plutôt que de lever une erreur.
    """
    noms_produits = {p.id: p.nom for p in produits}
    par_id = {t.id: t for t in techniciens}
    lignes = []
    for mouvement in mouvements:
        if mouvement.type != TypeMouvement.SORTIE or mouvement.technicien_id is None:
            continue
        technicien = par_id.get(mouvement.technicien_id)
        lignes.append(
            LigneConsommation(
                mouvement_id=mouvement.id,
                produit_id=mouvement.produit_id,
                nom_produit=noms_produits.get(mouvement.produit_id, PRODUIT_SUPPRIMÉ),
                technicien_id=mouvement.technicien_id,
                nom_technicien=technicien.nom if technicien else TECHNICIEN_INCONNU,
                équipe=technicien.équipe if technicien else TECHNICIEN_INCONNU,
                quantité=mouvement.quantité,
                créé_le=mouvement.créé_le,
                commentaire=mouvement.commentaire,
            )
        )
    # sorted() est stable : à horodatage égal, l'ordre d'entrée est conservé
    return sorted(lignes, key=lambda ligne: ligne.créé_le, reverse=True)


# --- Prêts d'outils ---


@dataclass(frozen=True)
class LignePrêt:
    prêt_id: str
    nom_outil: str
    catégorie: str
    numéro_série: Optional[str]
    technicien_id: Optional[str]
    nom_technicien: str
    équipe: str
    statut: StatutPrêt
    prêté_le: Optional[datetime] = None
    date_retour_prévue: Optional[date] = None
    notes: Optional[str] = None


def lignes_prêts_outils(
    prêts: Iterable[PrêtOutil], techniciens: Iterable[Technicien]
) -> list[LignePrêt]:
    par_id = {t.id: t for t in techniciens}
    lignes = []
    for prêt in prêts:
        if prêt.technicien_id is None:
            nom, équipe = SANS_TECHNICIEN, STOCK_CENTRAL
        else:
            technicien = par_id.get(prêt.technicien_id)
            nom = technicien.nom if technicien else TECHNICIEN_INCONNU
            équipe = technicien.équipe if technicien else TECHNICIEN_INCONNU
        lignes.append(
            LignePrêt(
                prêt_id=prêt.id,
                nom_outil=prêt.nom_outil,
                catégorie=prêt.catégorie,
                numéro_série=prêt.numéro_série,
                technicien_id=prêt.technicien_id,
                nom_technicien=nom,
                équipe=équipe,
                statut=prêt.statut,
                prêté_le=prêt.prêté_le,
                date_retour_prévue=prêt.date_retour_prévue,
                notes=prêt.notes,
            )
        )
    return lignes


def filtrer_lignes_prêts(lignes: Sequence[LignePrêt], recherche: str) -> list[LignePrêt]:
    terme = (recherche or "").strip().lower()
    if not terme:
        return list(lignes)
    return [
        ligne for ligne in lignes
        if any(
            terme in (champ or "").lower()
            for champ in (
                ligne.nom_outil,
                ligne.catégorie,
                ligne.numéro_série,
                ligne.nom_technicien,
            )
        )
    ]


def partitionner_par_disponibilité(
    lignes: Iterable[LignePrêt],
) -> tuple[list[LignePrêt], list[LignePrêt]]:
    """Sépare (outils prêtés, outils disponibles) en conservant l'ordre."""
    prêtés, disponibles = [], []
    for ligne in lignes:
        if ligne.statut == StatutPrêt.DISPONIBLE:
            disponibles.append(ligne)
        else:
            prêtés.append(ligne)
    return prêtés, disponibles


def est_en_retard(prêt: PrêtOutil, maintenant: datetime) -> bool:
    """
    Indique si la date de retour prévue est dépassée.

    Purement informatif : le statut RETARD reste une saisie manuelle
    et n'est jamais positionné automatiquement.
    """
    if prêt.technicien_id is None or prêt.date_retour_prévue is None:
        return False
    return prêt.date_retour_prévue < maintenant.date()


# --- Pagination et tableau de bord ---


@dataclass(frozen=True)
class Page:
    éléments: list
    total: int
    page: int
    limite: int

    @property
    def page_suivante(self) -> bool:
        return self.page * self.limite < self.total

    @property
    def nombre_de_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limite))


def paginer(éléments: Sequence[T], page: int = 1, limite: int = 50) -> Page:
    if page < 1 or limite < 1:
        raise ValueError("page et limite doivent être supérieures ou égales à 1")
    début = (page - 1) * limite
    return Page(
        éléments=list(éléments[début:début + limite]),
        total=len(éléments),
        page=page,
        limite=limite,
    )


@dataclass(frozen=True)
class LigneAlerte:
    produit_id: str
    nom: str
    disponible: int
    seuil: int
    statut: StatutStock
    message: str


@dataclass(frozen=True)
class Statistiques:
    total_produits: int
    techniciens: int
    mouvements_du_jour: int
    prêts_actifs: int
    produits_en_alerte: int
    produits_en_rupture: int
    prêts_en_retard: int


def statistiques_tableau_de_bord(inventaire: Inventaire, maintenant: datetime) -> Statistiques:
    aujourd_hui = maintenant.date()
    statuts = [classer_statut_stock(p, inventaire.mouvements) for p in inventaire.produits]
    return Statistiques(
        total_produits=len(inventaire.produits),
        techniciens=len(inventaire.techniciens),
        mouvements_du_jour=sum(
            1 for m in inventaire.mouvements if m.créé_le.date() == aujourd_hui
        ),
        prêts_actifs=sum(1 for p in inventaire.prêts if p.statut == StatutPrêt.EN_COURS),
        produits_en_alerte=statuts.count(StatutStock.ALERTE),
        produits_en_rupture=statuts.count(StatutStock.RUPTURE),
        prêts_en_retard=sum(1 for p in inventaire.prêts if est_en_retard(p, maintenant)),
    )
