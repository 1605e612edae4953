"""
Modèle de domaine du suivi de stock et des prêts d'outillage.

Le domaine décrit quatre entités : les produits consommables (Produit),
les techniciens qui les reçoivent (Technicien), le registre des
mouvements de stock (Mouvement) et le parc d'outillage prêté (PrêtOutil).

Toutes ces entités sont regroupées dans un instantané immuable,
l'Inventaire. Chaque transition (réapprovisionner, distribuer,
affecter un outil...) retourne un NOUVEL Inventaire : l'ancien n'est
jamais modifié (copy-on-write). Les invariants métier sont vérifiés
ici, avant toute modification, et les events produits par une
transition voyagent avec l'instantané résultant.
"""

from __future__ import annotations

import enum
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from inventaire.domain import events


FORMAT_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# --- Exceptions du domaine ---


class ErreurInventaire(Exception):
    """Classe de base des refus de validation du domaine."""
    pass


class QuantitéInvalide(ErreurInventaire):
    """Levée quand une quantité de mouvement n'est pas strictement positive."""
    pass


class StockInsuffisant(ErreurInventaire):
    """Levée quand une sortie dépasse le stock disponible."""
    pass


class TechnicienRequis(ErreurInventaire):
    """Levée quand une opération exige un technicien et qu'aucun n'est choisi."""
    pass


class ProduitInconnu(ErreurInventaire):
    pass


class TechnicienInconnu(ErreurInventaire):
    pass


class DonnéesInvalides(ErreurInventaire):
    """Levée quand un payload de création ou de modification est incohérent."""
    pass


# --- Énumérations ---


class TypeMouvement(str, enum.Enum):
    ENTREE = "ENTREE"
    SORTIE = "SORTIE"


class StatutPrêt(str, enum.Enum):
    EN_COURS = "EN_COURS"
    RETARD = "RETARD"
    DISPONIBLE = "DISPONIBLE"


class StatutStock(str, enum.Enum):
    """
    Statut d'alerte d'un produit.

    L'ordre de déclaration est l'ordre de gravité décroissante :
    RUPTURE, puis ALERTE, puis OK.
    """

    RUPTURE = "RUPTURE"
    ALERTE = "ALERTE"
    OK = "OK"

    @classmethod
    def pour(cls, disponible: int, seuil: int) -> StatutStock:
        """Le seuil est inclusif : disponible == seuil est déjà une alerte."""
        if disponible <= 0:
            return cls.RUPTURE
        if disponible <= seuil:
            return cls.ALERTE
        return cls.OK


def nouvel_identifiant() -> str:
    return uuid.uuid4().hex


# --- Value Objects et payloads ---


@dataclass(frozen=True)
class PièceJointe:
    """
    Pièce jointe d'une entrée de stock (photo de bon de livraison...).

    Le data_url est opaque pour le domaine : il est stocké tel quel
    et n'est jamais interprété.
    """

    nom: str
    data_url: str


@dataclass(frozen=True)
class DonnéesProduit:
    """Champs modifiables d'un produit (tout sauf l'identifiant)."""

    nom: str
    catégorie: str
    quantité_initiale: int = 0
    seuil: int = 0
    unité: Optional[str] = None
    message_alerte: str = ""


@dataclass(frozen=True)
class DonnéesTechnicien:
    nom: str
    email: str
    équipe: str
    téléphone: Optional[str] = None


@dataclass(frozen=True)
class DonnéesPrêtOutil:
    nom_outil: str
    catégorie: str
    statut: StatutPrêt = StatutPrêt.DISPONIBLE
    technicien_id: Optional[str] = None
    numéro_série: Optional[str] = None
    prêté_le: Optional[datetime] = None
    date_retour_prévue: Optional[date] = None
    notes: Optional[str] = None


# --- Entités ---


@dataclass(frozen=True)
class Produit:
    """
    Article consommable suivi en stock.

    Le stock disponible n'est pas stocké : il est recalculé à partir
    de la quantité initiale et des mouvements (voir Inventaire.disponible).
    """

    id: str
    nom: str
    catégorie: str
    quantité_initiale: int = 0
    seuil: int = 0
    unité: Optional[str] = None
    message_alerte: str = ""

    @classmethod
    def depuis(cls, id: str, données: DonnéesProduit) -> Produit:
        _valider_produit(données)
        return cls(
            id=id,
            nom=données.nom.strip(),
            catégorie=données.catégorie.strip(),
            quantité_initiale=données.quantité_initiale,
            seuil=données.seuil,
            unité=données.unité,
            message_alerte=données.message_alerte,
        )


@dataclass(frozen=True)
class Technicien:
    id: str
    nom: str
    email: str
    équipe: str
    téléphone: Optional[str] = None

    @classmethod
    def depuis(cls, id: str, données: DonnéesTechnicien) -> Technicien:
        if not données.nom.strip():
            raise DonnéesInvalides("Le nom du technicien est obligatoire")
        email = données.email.strip().lower()
        if not FORMAT_EMAIL.match(email):
            raise DonnéesInvalides(f"Email invalide : {données.email!r}")
        return cls(
            id=id,
            nom=données.nom.strip(),
            email=email,
            équipe=données.équipe.strip(),
            téléphone=données.téléphone,
        )


@dataclass(frozen=True)
class Mouvement:
    """
    Écriture immuable du registre de stock.

    technicien_id vaut None pour une ENTREE, ainsi que pour une SORTIE
    dont le technicien a depuis été supprimé.
    """

    id: str
    produit_id: str
    quantité: int
    type: TypeMouvement
    créé_le: datetime
    technicien_id: Optional[str] = None
    commentaire: Optional[str] = None
    pièce_jointe: Optional[PièceJointe] = None
    numéro_facture: Optional[str] = None


@dataclass(frozen=True)
class PrêtOutil:
    """
    Outil prêtable et son détenteur actuel.

    Invariant : statut == DISPONIBLE si et seulement si technicien_id is None.
    """

    id: str
    nom_outil: str
    catégorie: str
    statut: StatutPrêt = StatutPrêt.DISPONIBLE
    technicien_id: Optional[str] = None
    numéro_série: Optional[str] = None
    prêté_le: Optional[datetime] = None
    date_retour_prévue: Optional[date] = None
    notes: Optional[str] = None

    @classmethod
    def depuis(cls, id: str, données: DonnéesPrêtOutil) -> PrêtOutil:
        if not données.nom_outil.strip():
            raise DonnéesInvalides("Le nom de l'outil est obligatoire")
        technicien_id = données.technicien_id or None
        return cls(
            id=id,
            nom_outil=données.nom_outil.strip(),
            catégorie=données.catégorie.strip(),
            statut=_statut_cohérent(données.statut, technicien_id),
            technicien_id=technicien_id,
            numéro_série=données.numéro_série or None,
            prêté_le=données.prêté_le,
            date_retour_prévue=données.date_retour_prévue,
            notes=données.notes,
        )


def _valider_produit(données: DonnéesProduit) -> None:
    if not données.nom.strip():
        raise DonnéesInvalides("Le nom du produit est obligatoire")
    if données.quantité_initiale < 0:
        raise DonnéesInvalides("La quantité initiale ne peut pas être négative")
    if données.seuil < 0:
        raise DonnéesInvalides("Le seuil d'alerte ne peut pas être négatif")


def _statut_cohérent(statut: StatutPrêt, technicien_id: Optional[str]) -> StatutPrêt:
    # Un outil sans détenteur est forcément disponible, et inversement.
    if technicien_id is None:
        return StatutPrêt.DISPONIBLE
    if statut == StatutPrêt.DISPONIBLE:
        return StatutPrêt.EN_COURS
    return statut


# --- Agrégat : l'instantané de l'inventaire ---


@dataclass(frozen=True)
class Inventaire:
    """
    Instantané immuable de tout l'état de l'application.

    C'est la frontière de cohérence : toutes les mutations passent par
    ses méthodes, qui vérifient les invariants puis retournent un nouvel
    Inventaire portant les events de la transition. Un identifiant
    inexistant en modification ou suppression est un no-op silencieux :
    l'instantané est retourné inchangé.

    Les mouvements sont rangés du plus récent au plus ancien.
    """

    produits: tuple[Produit, ...] = ()
    techniciens: tuple[Technicien, ...] = ()
    mouvements: tuple[Mouvement, ...] = ()
    prêts: tuple[PrêtOutil, ...] = ()
    événements: tuple[events.Event, ...] = field(default=(), compare=False)

    # --- Lecture ---

    def produit(self, produit_id: str) -> Optional[Produit]:
        return next((p for p in self.produits if p.id == produit_id), None)

    def technicien(self, technicien_id: str) -> Optional[Technicien]:
        return next((t for t in self.techniciens if t.id == technicien_id), None)

    def prêt(self, prêt_id: str) -> Optional[PrêtOutil]:
        return next((p for p in self.prêts if p.id == prêt_id), None)

    def disponible(self, produit_id: str) -> int:
        """Quantité initiale + entrées − sorties. Vaut 0 pour un produit inconnu."""
        produit = self.produit(produit_id)
        if produit is None:
            return 0
        return produit.quantité_initiale + solde_mouvements(produit_id, self.mouvements)

    def sans_événements(self) -> Inventaire:
        return replace(self, événements=())

    def _avec(self, *nouveaux: events.Event, **changements) -> Inventaire:
        return replace(self, événements=self.événements + nouveaux, **changements)

    # --- Produits ---

    def ajouter_produit(self, produit: Produit) -> Inventaire:
        if self.produit(produit.id) is not None:
            raise DonnéesInvalides(f"Produit déjà existant : {produit.id}")
        return self._avec(produits=self.produits + (produit,))

    def modifier_produit(self, produit_id: str, données: DonnéesProduit) -> Inventaire:
        if self.produit(produit_id) is None:
            return self
        modifié = Produit.depuis(produit_id, données)
        disponible = modifié.quantité_initiale + solde_mouvements(produit_id, self.mouvements)
        if disponible < 0:
            raise DonnéesInvalides(
                f"La quantité initiale de {modifié.nom} ne couvre pas les sorties déjà "
                f"enregistrées (disponible : {disponible})"
            )
        return self._avec(
            produits=tuple(modifié if p.id == produit_id else p for p in self.produits)
        )

    def supprimer_produit(self, produit_id: str) -> Inventaire:
        """Supprime le produit ET tous les mouvements qui le référencent."""
        if self.produit(produit_id) is None:
            return self
        conservés = tuple(m for m in self.mouvements if m.produit_id != produit_id)
        return self._avec(
            events.ProduitSupprimé(
                produit_id=produit_id,
                mouvements_supprimés=len(self.mouvements) - len(conservés),
            ),
            produits=tuple(p for p in self.produits if p.id != produit_id),
            mouvements=conservés,
        )

    # --- Techniciens ---

    def ajouter_technicien(self, technicien: Technicien) -> Inventaire:
        if self.technicien(technicien.id) is not None:
            raise DonnéesInvalides(f"Technicien déjà existant : {technicien.id}")
        self._vérifier_email_libre(technicien)
        return self._avec(techniciens=self.techniciens + (technicien,))

    def modifier_technicien(
        self, technicien_id: str, données: DonnéesTechnicien
    ) -> Inventaire:
        if self.technicien(technicien_id) is None:
            return self
        modifié = Technicien.depuis(technicien_id, données)
        self._vérifier_email_libre(modifié)
        return self._avec(
            techniciens=tuple(
                modifié if t.id == technicien_id else t for t in self.techniciens
            )
        )

    def _vérifier_email_libre(self, technicien: Technicien) -> None:
        for autre in self.techniciens:
            if autre.id != technicien.id and autre.email == technicien.email:
                raise DonnéesInvalides(f"Email déjà utilisé : {technicien.email}")

    def supprimer_technicien(self, technicien_id: str) -> Inventaire:
        """
        Supprime le technicien et détache ses mouvements.

        L'historique est conservé (technicien_id passe à None). Les prêts
        d'outils ne sont volontairement pas modifiés.
        """
        if self.technicien(technicien_id) is None:
            return self
        détachés = 0
        mouvements = []
        for mouvement in self.mouvements:
            if mouvement.technicien_id == technicien_id:
                mouvement = replace(mouvement, technicien_id=None)
                détachés += 1
            mouvements.append(mouvement)
        return self._avec(
            events.TechnicienSupprimé(
                technicien_id=technicien_id, mouvements_détachés=détachés
            ),
            techniciens=tuple(t for t in self.techniciens if t.id != technicien_id),
            mouvements=tuple(mouvements),
        )

    # --- Mouvements ---

    def réapprovisionner(
        self,
        mouvement_id: str,
        produit_id: str,
        quantité: int,
        créé_le: datetime,
        commentaire: Optional[str] = None,
        pièce_jointe: Optional[PièceJointe] = None,
        numéro_facture: Optional[str] = None,
    ) -> Inventaire:
        """Enregistre une ENTREE en tête du registre."""
        _vérifier_quantité(quantité)
        if self.produit(produit_id) is None:
            raise ProduitInconnu(f"Produit inconnu : {produit_id}")
        entrée = Mouvement(
            id=mouvement_id,
            produit_id=produit_id,
            quantité=quantité,
            type=TypeMouvement.ENTREE,
            créé_le=créé_le,
            commentaire=commentaire,
            pièce_jointe=pièce_jointe,
            numéro_facture=numéro_facture,
        )
        return self._avec(mouvements=(entrée,) + self.mouvements)

    def distribuer(
        self,
        mouvement_id: str,
        produit_id: str,
        technicien_id: Optional[str],
        quantité: int,
        créé_le: datetime,
        commentaire: Optional[str] = None,
    ) -> Inventaire:
        """
        Enregistre une SORTIE vers un technicien.

        Refuse toute sortie qui rendrait le stock disponible négatif.
        Émet StockBas ou RuptureDeStock quand la sortie fait changer
        le statut d'alerte du produit.
        """
        _vérifier_quantité(quantité)
        if not technicien_id:
            raise TechnicienRequis("Un technicien doit être choisi pour une sortie")
        produit = self.produit(produit_id)
        if produit is None:
            raise ProduitInconnu(f"Produit inconnu : {produit_id}")
        if self.technicien(technicien_id) is None:
            raise TechnicienInconnu(f"Technicien inconnu : {technicien_id}")

        avant = self.disponible(produit_id)
        if quantité > avant:
            raise StockInsuffisant(
                f"Stock insuffisant pour {produit.nom} : "
                f"{quantité} demandé(s), {avant} disponible(s)"
            )

        sortie = Mouvement(
            id=mouvement_id,
            produit_id=produit_id,
            quantité=quantité,
            type=TypeMouvement.SORTIE,
            créé_le=créé_le,
            technicien_id=technicien_id,
            commentaire=commentaire,
        )
        après = avant - quantité
        return self._avec(
            *_events_alerte(produit, avant, après),
            mouvements=(sortie,) + self.mouvements,
        )

    # --- Prêts d'outils ---

    def ajouter_prêt(self, prêt: PrêtOutil, maintenant: datetime) -> Inventaire:
        """
        Ajoute un outil au parc.

        Un outil créé déjà confié à un technicien existant est daté de
        `maintenant` si la date de prêt manque.
        """
        if self.prêt(prêt.id) is not None:
            raise DonnéesInvalides(f"Prêt déjà existant : {prêt.id}")
        return self._avec(prêts=self.prêts + (self._prêt_vérifié(prêt, maintenant),))

    def modifier_prêt(
        self, prêt_id: str, données: DonnéesPrêtOutil, maintenant: datetime
    ) -> Inventaire:
        """Édition manuelle, y compris le passage EN_COURS -> RETARD."""
        actuel = self.prêt(prêt_id)
        if actuel is None:
            return self
        modifié = PrêtOutil.depuis(prêt_id, données)
        if modifié.prêté_le is None and modifié.technicien_id == actuel.technicien_id:
            modifié = replace(modifié, prêté_le=actuel.prêté_le)
        return self._remplacer_prêt(self._prêt_vérifié(modifié, maintenant))

    def _prêt_vérifié(self, prêt: PrêtOutil, maintenant: datetime) -> PrêtOutil:
        if prêt.technicien_id is None:
            return prêt
        if self.technicien(prêt.technicien_id) is None:
            raise TechnicienInconnu(f"Technicien inconnu : {prêt.technicien_id}")
        if prêt.prêté_le is None:
            return replace(prêt, prêté_le=maintenant)
        return prêt

    def supprimer_prêt(self, prêt_id: str) -> Inventaire:
        if self.prêt(prêt_id) is None:
            return self
        return self._avec(prêts=tuple(p for p in self.prêts if p.id != prêt_id))

    def affecter_outil(
        self,
        prêt_id: str,
        technicien_id: Optional[str],
        prêté_le: datetime,
        date_retour_prévue: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Inventaire:
        """DISPONIBLE -> EN_COURS : confie l'outil à un technicien."""
        if not technicien_id:
            raise TechnicienRequis("Un technicien doit être choisi pour un prêt")
        actuel = self.prêt(prêt_id)
        if actuel is None:
            return self
        if self.technicien(technicien_id) is None:
            raise TechnicienInconnu(f"Technicien inconnu : {technicien_id}")
        affecté = replace(
            actuel,
            technicien_id=technicien_id,
            statut=StatutPrêt.EN_COURS,
            prêté_le=prêté_le,
            date_retour_prévue=date_retour_prévue,
            notes=notes if notes is not None else actuel.notes,
        )
        return self._remplacer_prêt(
            affecté,
            events.OutilAffecté(
                prêt_id=prêt_id,
                nom_outil=actuel.nom_outil,
                technicien_id=technicien_id,
            ),
        )

    def retourner_outil(self, prêt_id: str) -> Inventaire:
        """EN_COURS ou RETARD -> DISPONIBLE : l'outil revient au stock central."""
        actuel = self.prêt(prêt_id)
        if actuel is None:
            return self
        retourné = replace(
            actuel,
            technicien_id=None,
            statut=StatutPrêt.DISPONIBLE,
            date_retour_prévue=None,
        )
        return self._remplacer_prêt(
            retourné,
            events.OutilRetourné(prêt_id=prêt_id, nom_outil=actuel.nom_outil),
        )

    def _remplacer_prêt(self, prêt: PrêtOutil, *nouveaux: events.Event) -> Inventaire:
        return self._avec(
            *nouveaux,
            prêts=tuple(prêt if p.id == prêt.id else p for p in self.prêts),
        )


def solde_mouvements(produit_id: str, mouvements) -> int:
    """Somme des ENTREE moins somme des SORTIE pour un produit."""
    solde = 0
    for mouvement in mouvements:
        if mouvement.produit_id != produit_id:
            continue
        if mouvement.type == TypeMouvement.ENTREE:
            solde += mouvement.quantité
        else:
            solde -= mouvement.quantité
    return solde


def _vérifier_quantité(quantité: int) -> None:
    if quantité <= 0:
        raise QuantitéInvalide(f"La quantité doit être positive (reçu : {quantité})")


def _events_alerte(produit: Produit, avant: int, après: int) -> tuple[events.Event, ...]:
    statut_avant = StatutStock.pour(avant, produit.seuil)
    statut_après = StatutStock.pour(après, produit.seuil)
    if statut_après == statut_avant:
        return ()
    détails = dict(
        produit_id=produit.id,
        nom=produit.nom,
        disponible=après,
        seuil=produit.seuil,
        message=produit.message_alerte,
    )
    if statut_après == StatutStock.RUPTURE:
        return (events.RuptureDeStock(**détails),)
    if statut_après == StatutStock.ALERTE:
        return (events.StockBas(**détails),)
    return ()
