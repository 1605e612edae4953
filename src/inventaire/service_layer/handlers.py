"""
Handlers pour les commands et events.

- Command handlers : une mutation de l'inventaire chacun. Ils lisent
  l'instantané courant, appliquent la transition du domaine, puis
  valident. Une erreur du domaine remonte avant tout commit.
- Event handlers : réagissent aux faits (alertes de stock, journal).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from inventaire import config
from inventaire.domain import commands, events, model

if TYPE_CHECKING:
    from inventaire.adapters.notifications import AbstractNotifications
    from inventaire.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

Horloge = Callable[[], datetime]


# --- Command Handlers : mouvements ---


def réapprovisionner(
    cmd: commands.Réapprovisionner,
    uow: AbstractUnitOfWork,
    horloge: Horloge,
) -> str:
    """Enregistre une entrée de stock et retourne l'id du mouvement."""
    mouvement_id = model.nouvel_identifiant()
    with uow:
        inventaire = uow.inventaires.get()
        uow.inventaires.add(
            inventaire.réapprovisionner(
                mouvement_id=mouvement_id,
                produit_id=cmd.produit_id,
                quantité=cmd.quantité,
                créé_le=horloge(),
                commentaire=cmd.commentaire,
                pièce_jointe=cmd.pièce_jointe,
                numéro_facture=cmd.numéro_facture,
            )
        )
        uow.commit()
    logger.info("Entrée de %d sur le produit %s", cmd.quantité, cmd.produit_id)
    return mouvement_id


def distribuer(
    cmd: commands.Distribuer,
    uow: AbstractUnitOfWork,
    horloge: Horloge,
) -> str:
    """
    Enregistre une sortie vers un technicien.

    Lève StockInsuffisant, TechnicienRequis, ProduitInconnu ou
    TechnicienInconnu sans rien modifier.
    """
    mouvement_id = model.nouvel_identifiant()
    with uow:
        inventaire = uow.inventaires.get()
        uow.inventaires.add(
            inventaire.distribuer(
                mouvement_id=mouvement_id,
                produit_id=cmd.produit_id,
                technicien_id=cmd.technicien_id,
                quantité=cmd.quantité,
                créé_le=horloge(),
                commentaire=cmd.commentaire,
            )
        )
        uow.commit()
    logger.info(
        "Sortie de %d sur le produit %s vers %s",
        cmd.quantité, cmd.produit_id, cmd.technicien_id,
    )
    return mouvement_id


# --- Command Handlers : produits ---


def créer_produit(cmd: commands.CréerProduit, uow: AbstractUnitOfWork) -> str:
    produit = model.Produit.depuis(cmd.id or model.nouvel_identifiant(), cmd.données)
    with uow:
        uow.inventaires.add(uow.inventaires.get().ajouter_produit(produit))
        uow.commit()
    return produit.id


def modifier_produit(cmd: commands.ModifierProduit, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(uow.inventaires.get().modifier_produit(cmd.id, cmd.données))
        uow.commit()


def supprimer_produit(cmd: commands.SupprimerProduit, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(uow.inventaires.get().supprimer_produit(cmd.id))
        uow.commit()


# --- Command Handlers : techniciens ---


def créer_technicien(cmd: commands.CréerTechnicien, uow: AbstractUnitOfWork) -> str:
    technicien = model.Technicien.depuis(cmd.id or model.nouvel_identifiant(), cmd.données)
    with uow:
        uow.inventaires.add(uow.inventaires.get().ajouter_technicien(technicien))
        uow.commit()
    return technicien.id


def modifier_technicien(cmd: commands.ModifierTechnicien, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(
            uow.inventaires.get().modifier_technicien(cmd.id, cmd.données)
        )
        uow.commit()


def supprimer_technicien(cmd: commands.SupprimerTechnicien, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(uow.inventaires.get().supprimer_technicien(cmd.id))
        uow.commit()


# --- Command Handlers : prêts d'outils ---


def créer_prêt_outil(
    cmd: commands.CréerPrêtOutil,
    uow: AbstractUnitOfWork,
    horloge: Horloge,
) -> str:
    prêt = model.PrêtOutil.depuis(cmd.id or model.nouvel_identifiant(), cmd.données)
    with uow:
        uow.inventaires.add(uow.inventaires.get().ajouter_prêt(prêt, horloge()))
        uow.commit()
    return prêt.id


def modifier_prêt_outil(
    cmd: commands.ModifierPrêtOutil,
    uow: AbstractUnitOfWork,
    horloge: Horloge,
) -> None:
    with uow:
        inventaire = uow.inventaires.get()
        uow.inventaires.add(inventaire.modifier_prêt(cmd.id, cmd.données, horloge()))
        uow.commit()


def supprimer_prêt_outil(cmd: commands.SupprimerPrêtOutil, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(uow.inventaires.get().supprimer_prêt(cmd.id))
        uow.commit()


def affecter_outil(
    cmd: commands.AffecterOutil,
    uow: AbstractUnitOfWork,
    horloge: Horloge,
) -> None:
    with uow:
        inventaire = uow.inventaires.get()
        uow.inventaires.add(
            inventaire.affecter_outil(
                prêt_id=cmd.prêt_id,
                technicien_id=cmd.technicien_id,
                prêté_le=horloge(),
                date_retour_prévue=cmd.date_retour_prévue,
                notes=cmd.notes,
            )
        )
        uow.commit()


def retourner_outil(cmd: commands.RetournerOutil, uow: AbstractUnitOfWork) -> None:
    with uow:
        uow.inventaires.add(uow.inventaires.get().retourner_outil(cmd.prêt_id))
        uow.commit()


# --- Event Handlers ---


def envoyer_alerte_stock_bas(
    event: events.StockBas,
    notifications: AbstractNotifications,
) -> None:
    """Prévient le responsable du stock qu'un produit a atteint son seuil."""
    notifications.send(
        destination=config.get_alert_email(),
        sujet=f"Stock bas : {event.nom}",
        message=(
            f"Le produit {event.nom} est sous son seuil d'alerte "
            f"({event.disponible} disponible(s), seuil {event.seuil}).\n"
            f"{event.message}"
        ),
    )


def envoyer_alerte_rupture(
    event: events.RuptureDeStock,
    notifications: AbstractNotifications,
) -> None:
    notifications.send(
        destination=config.get_alert_email(),
        sujet=f"Rupture de stock : {event.nom}",
        message=f"Le produit {event.nom} est en rupture de stock.\n{event.message}",
    )


def journaliser_alerte(event: events.StockBas | events.RuptureDeStock) -> None:
    logger.warning(
        "%s : %s (%d disponible(s), seuil %d)",
        type(event).__name__, event.nom, event.disponible, event.seuil,
    )


def journaliser_prêt(event: events.OutilAffecté | events.OutilRetourné) -> None:
    if isinstance(event, events.OutilAffecté):
        logger.info("Outil %s confié à %s", event.nom_outil, event.technicien_id)
    else:
        logger.info("Outil %s retourné au stock central", event.nom_outil)


def journaliser_suppression(
    event: events.ProduitSupprimé | events.TechnicienSupprimé,
) -> None:
    if isinstance(event, events.ProduitSupprimé):
        logger.info(
            "Produit %s supprimé avec %d mouvement(s)",
            event.produit_id, event.mouvements_supprimés,
        )
    else:
        logger.info(
            "Technicien %s supprimé, %d mouvement(s) détaché(s)",
            event.technicien_id, event.mouvements_détachés,
        )
