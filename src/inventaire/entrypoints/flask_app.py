"""
Point d'entrée Flask.

L'API est un thin adapter : elle authentifie l'utilisateur, convertit
les requêtes JSON en commands envoyées au message bus, et sert les
views en lecture. Elle ne contient aucune logique métier.

Toute lecture exige une session ; toute mutation exige le rôle ADMIN.
"""

from __future__ import annotations

import functools
import logging
import sys
from datetime import date, datetime, time
from io import BytesIO
from typing import Optional

from flask import Flask, jsonify, request, send_file, session

from inventaire import config
from inventaire.adapters import export_excel, identite, pieces_jointes
from inventaire.domain import calculs, commands, model
from inventaire.service_layer import bootstrap
from inventaire.views import views

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = config.get_secret_key()
bus = bootstrap.bootstrap()
identités: identite.AbstractIdentités = identite.IdentitésEnDur()

TYPE_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
TRIS_PRODUITS = {"nom": "nom", "quantite": "quantité", "creation": "création"}


class RequêteInvalide(Exception):
    pass


@app.errorhandler(model.ErreurInventaire)
def erreur_domaine(erreur: model.ErreurInventaire):
    return jsonify({"message": str(erreur)}), 400


@app.errorhandler(RequêteInvalide)
def requête_invalide(erreur: RequêteInvalide):
    return jsonify({"message": str(erreur)}), 400


@app.errorhandler(pieces_jointes.PièceJointeInvalide)
def pièce_jointe_invalide(erreur: pieces_jointes.PièceJointeInvalide):
    return jsonify({"message": str(erreur)}), 400


# --- Session ---


def connexion_requise(vue):
    @functools.wraps(vue)
    def enveloppe(*args, **kwargs):
        if "utilisateur" not in session:
            return jsonify({"message": "Authentification requise"}), 401
        return vue(*args, **kwargs)
    return enveloppe


def admin_requis(vue):
    @functools.wraps(vue)
    def enveloppe(*args, **kwargs):
        utilisateur = session.get("utilisateur")
        if utilisateur is None:
            return jsonify({"message": "Authentification requise"}), 401
        if utilisateur["rôle"] != identite.Rôle.ADMIN.value:
            return jsonify({"message": "Droits administrateur requis"}), 403
        return vue(*args, **kwargs)
    return enveloppe


@app.route("/login", methods=["POST"])
def login_endpoint():
    """
    POST /login
    Body JSON : { email, mot_de_passe }
    """
    data = _json()
    try:
        utilisateur = identités.authentifier(
            _texte_optionnel(data, "email", ""), _texte_optionnel(data, "mot_de_passe", "")
        )
    except identite.IdentifiantsInvalides as e:
        return jsonify({"message": str(e)}), 401

    session["utilisateur"] = {
        "id": utilisateur.id,
        "nom": utilisateur.nom,
        "email": utilisateur.email,
        "rôle": utilisateur.rôle.value,
    }
    logger.info("Connexion de %s", utilisateur.email)
    return jsonify(session["utilisateur"]), 200


@app.route("/logout", methods=["POST"])
def logout_endpoint():
    session.pop("utilisateur", None)
    return "", 204


# --- Conversion des payloads ---


def _json() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RequêteInvalide("Objet JSON attendu")
    return data


def _entier(data: dict, clé: str, défaut: Optional[int] = None) -> int:
    """Entier JSON ou chaîne de chiffres (formulaires) ; jamais tronqué."""
    valeur = data.get(clé, défaut)
    if valeur is None:
        raise RequêteInvalide(f"Champ obligatoire : {clé}")
    if isinstance(valeur, bool) or (isinstance(valeur, float) and not valeur.is_integer()):
        raise RequêteInvalide(f"Entier attendu pour {clé} : {valeur!r}")
    try:
        return int(valeur)
    except (TypeError, ValueError):
        raise RequêteInvalide(f"Entier attendu pour {clé} : {valeur!r}")


def _texte(data: dict, clé: str) -> str:
    valeur = data.get(clé)
    if not isinstance(valeur, str):
        raise RequêteInvalide(f"Champ obligatoire : {clé}")
    return valeur


def _texte_optionnel(data: dict, clé: str, défaut: Optional[str] = None) -> Optional[str]:
    valeur = data.get(clé)
    if valeur is None:
        return défaut
    if not isinstance(valeur, str):
        raise RequêteInvalide(f"Texte attendu pour {clé} : {valeur!r}")
    return valeur


def _date(valeur: Optional[str]) -> Optional[date]:
    if not valeur:
        return None
    if not isinstance(valeur, str):
        raise RequêteInvalide(f"Date invalide : {valeur!r}")
    try:
        return date.fromisoformat(valeur[:10])
    except ValueError:
        raise RequêteInvalide(f"Date invalide : {valeur}")


def _instant(valeur: Optional[str], fin_de_journée: bool = False) -> Optional[datetime]:
    """
    Convertit une date ISO en instant local.

    Une date seule est ramenée au début (ou à la fin) de la journée,
    pour que les bornes de filtre restent inclusives.
    """
    if not valeur:
        return None
    if not isinstance(valeur, str):
        raise RequêteInvalide(f"Date invalide : {valeur!r}")
    try:
        if len(valeur) == 10:
            jour = date.fromisoformat(valeur)
            return datetime.combine(jour, time.max if fin_de_journée else time.min)
        instant = datetime.fromisoformat(valeur)
    except ValueError:
        raise RequêteInvalide(f"Date invalide : {valeur}")
    if instant.tzinfo is not None:
        instant = instant.astimezone().replace(tzinfo=None)
    return instant


def _données_produit(data: dict) -> model.DonnéesProduit:
    return model.DonnéesProduit(
        nom=_texte(data, "nom"),
        catégorie=_texte(data, "categorie"),
        quantité_initiale=_entier(data, "quantite_initiale", 0),
        seuil=_entier(data, "seuil", 0),
        unité=_texte_optionnel(data, "unite"),
        message_alerte=_texte_optionnel(data, "message_alerte", ""),
    )


def _données_technicien(data: dict) -> model.DonnéesTechnicien:
    return model.DonnéesTechnicien(
        nom=_texte(data, "nom"),
        email=_texte(data, "email"),
        équipe=_texte(data, "equipe"),
        téléphone=_texte_optionnel(data, "telephone"),
    )


def _données_prêt(data: dict) -> model.DonnéesPrêtOutil:
    try:
        statut = model.StatutPrêt(data.get("statut", model.StatutPrêt.DISPONIBLE.value))
    except ValueError:
        raise RequêteInvalide(f"Statut de prêt inconnu : {data.get('statut')}")
    return model.DonnéesPrêtOutil(
        nom_outil=_texte(data, "nom_outil"),
        catégorie=_texte(data, "categorie"),
        statut=statut,
        technicien_id=_texte_optionnel(data, "technicien_id"),
        numéro_série=_texte_optionnel(data, "numero_serie"),
        prêté_le=_instant(data.get("prete_le")),
        date_retour_prévue=_date(data.get("date_retour_prevue")),
        notes=_texte_optionnel(data, "notes"),
    )


def _pièce_jointe_json(brute) -> Optional[model.PièceJointe]:
    if brute is None:
        return None
    if not isinstance(brute, dict):
        raise RequêteInvalide("piece_jointe doit être un objet {nom, data_url}")
    return model.PièceJointe(nom=_texte(brute, "nom"), data_url=_texte(brute, "data_url"))


def _filtre_mouvements() -> calculs.FiltreMouvements:
    args = request.args
    return calculs.FiltreMouvements(
        technicien_id=_sauf_tous(args.get("technicien_id")),
        produit_id=_sauf_tous(args.get("produit_id")),
        du=_instant(args.get("du")),
        au=_instant(args.get("au"), fin_de_journée=True),
    )


def _sauf_tous(valeur: Optional[str]) -> Optional[str]:
    return None if valeur in (None, "", "all", "tous") else valeur


def _créé(résultats: list, clé: str = "id"):
    return jsonify({clé: résultats.pop(0)}), 201


# --- Produits ---


@app.route("/produits", methods=["GET"])
@connexion_requise
def produits_endpoint():
    """
    GET /produits?recherche=&tri=nom|quantite|creation&ordre=asc|desc&page=&limite=
    """
    args = request.args
    tri = args.get("tri", "creation")
    if tri not in TRIS_PRODUITS:
        raise RequêteInvalide(f"Critère de tri inconnu : {tri}")
    try:
        résultat = views.produits(
            bus.uow,
            recherche=args.get("recherche", ""),
            tri=TRIS_PRODUITS[tri],
            ordre=args.get("ordre", "asc"),
            page=_entier(args, "page", 1),
            limite=_entier(args, "limite", 50),
        )
    except ValueError as e:
        raise RequêteInvalide(str(e))
    return jsonify(résultat), 200


@app.route("/produits/<produit_id>", methods=["GET"])
@connexion_requise
def produit_endpoint(produit_id: str):
    résultat = views.produit(produit_id, bus.uow)
    if résultat is None:
        return "not found", 404
    return jsonify(résultat), 200


@app.route("/produits", methods=["POST"])
@admin_requis
def créer_produit_endpoint():
    data = _json()
    cmd = commands.CréerProduit(
        données=_données_produit(data), id=_texte_optionnel(data, "id")
    )
    return _créé(bus.handle(cmd))


@app.route("/produits/<produit_id>", methods=["PUT"])
@admin_requis
def modifier_produit_endpoint(produit_id: str):
    data = _json()
    bus.handle(commands.ModifierProduit(id=produit_id, données=_données_produit(data)))
    return "OK", 200


@app.route("/produits/<produit_id>", methods=["DELETE"])
@admin_requis
def supprimer_produit_endpoint(produit_id: str):
    bus.handle(commands.SupprimerProduit(id=produit_id))
    return "", 204


@app.route("/alertes", methods=["GET"])
@connexion_requise
def alertes_endpoint():
    return jsonify(views.alertes(bus.uow)), 200


# --- Techniciens ---


@app.route("/techniciens", methods=["GET"])
@connexion_requise
def techniciens_endpoint():
    return jsonify(views.techniciens(bus.uow)), 200


@app.route("/techniciens", methods=["POST"])
@admin_requis
def créer_technicien_endpoint():
    data = _json()
    cmd = commands.CréerTechnicien(
        données=_données_technicien(data), id=_texte_optionnel(data, "id")
    )
    return _créé(bus.handle(cmd))


@app.route("/techniciens/<technicien_id>", methods=["PUT"])
@admin_requis
def modifier_technicien_endpoint(technicien_id: str):
    data = _json()
    bus.handle(
        commands.ModifierTechnicien(id=technicien_id, données=_données_technicien(data))
    )
    return "OK", 200


@app.route("/techniciens/<technicien_id>", methods=["DELETE"])
@admin_requis
def supprimer_technicien_endpoint(technicien_id: str):
    bus.handle(commands.SupprimerTechnicien(id=technicien_id))
    return "", 204


# --- Mouvements ---


@app.route("/mouvements", methods=["GET"])
@connexion_requise
def mouvements_endpoint():
    """GET /mouvements?technicien_id=&produit_id=&du=AAAA-MM-JJ&au=AAAA-MM-JJ"""
    return jsonify(views.mouvements(bus.uow, _filtre_mouvements())), 200


@app.route("/mouvements/entree", methods=["POST"])
@admin_requis
def réapprovisionner_endpoint():
    """
    POST /mouvements/entree
    JSON : { produit_id, quantite, commentaire?, numero_facture?, piece_jointe?: {nom, data_url} }
    ou multipart/form-data avec les mêmes champs et un fichier image `fichier`.
    """
    if request.files:
        data = request.form.to_dict()
        fichier = request.files.get("fichier")
        pièce_jointe = None
        if fichier is not None:
            pièce_jointe = pieces_jointes.encoder_pièce_jointe(
                fichier.filename or "piece-jointe", fichier.read(), fichier.mimetype
            )
    else:
        data = _json()
        pièce_jointe = _pièce_jointe_json(data.get("piece_jointe"))

    cmd = commands.Réapprovisionner(
        produit_id=_texte(data, "produit_id"),
        quantité=_entier(data, "quantite"),
        commentaire=_texte_optionnel(data, "commentaire") or None,
        pièce_jointe=pièce_jointe,
        numéro_facture=_texte_optionnel(data, "numero_facture") or None,
    )
    return _créé(bus.handle(cmd))


@app.route("/mouvements/sortie", methods=["POST"])
@admin_requis
def distribuer_endpoint():
    """POST /mouvements/sortie  JSON : { produit_id, technicien_id, quantite, commentaire? }"""
    data = _json()
    cmd = commands.Distribuer(
        produit_id=_texte(data, "produit_id"),
        technicien_id=_texte_optionnel(data, "technicien_id"),
        quantité=_entier(data, "quantite"),
        commentaire=_texte_optionnel(data, "commentaire") or None,
    )
    return _créé(bus.handle(cmd))


@app.route("/consommation", methods=["GET"])
@connexion_requise
def consommation_endpoint():
    return jsonify(views.consommation(bus.uow, _filtre_mouvements())), 200


# --- Prêts d'outils ---


@app.route("/prets", methods=["GET"])
@connexion_requise
def prêts_endpoint():
    return jsonify(views.prêts_outils(bus.uow, recherche=request.args.get("recherche", ""))), 200


@app.route("/prets", methods=["POST"])
@admin_requis
def créer_prêt_endpoint():
    data = _json()
    cmd = commands.CréerPrêtOutil(données=_données_prêt(data), id=_texte_optionnel(data, "id"))
    return _créé(bus.handle(cmd))


@app.route("/prets/<pret_id>", methods=["GET"])
@connexion_requise
def prêt_endpoint(pret_id: str):
    résultat = views.prêt_outil(pret_id, bus.uow)
    if résultat is None:
        return "not found", 404
    return jsonify(résultat), 200


@app.route("/prets/<pret_id>", methods=["PUT"])
@admin_requis
def modifier_prêt_endpoint(pret_id: str):
    data = _json()
    bus.handle(commands.ModifierPrêtOutil(id=pret_id, données=_données_prêt(data)))
    return "OK", 200


@app.route("/prets/<pret_id>", methods=["DELETE"])
@admin_requis
def supprimer_prêt_endpoint(pret_id: str):
    bus.handle(commands.SupprimerPrêtOutil(id=pret_id))
    return "", 204


@app.route("/prets/<pret_id>/affecter", methods=["POST"])
@admin_requis
def affecter_outil_endpoint(pret_id: str):
    """POST /prets/<id>/affecter  JSON : { technicien_id, date_retour_prevue?, notes? }"""
    data = _json()
    bus.handle(
        commands.AffecterOutil(
            prêt_id=pret_id,
            technicien_id=_texte_optionnel(data, "technicien_id"),
            date_retour_prévue=_date(data.get("date_retour_prevue")),
            notes=_texte_optionnel(data, "notes"),
        )
    )
    return "OK", 200


@app.route("/prets/<pret_id>/retour", methods=["POST"])
@admin_requis
def retourner_outil_endpoint(pret_id: str):
    bus.handle(commands.RetournerOutil(prêt_id=pret_id))
    return "OK", 200


# --- Tableau de bord et exports ---


@app.route("/tableau-de-bord", methods=["GET"])
@connexion_requise
def tableau_de_bord_endpoint():
    return jsonify(views.tableau_de_bord(bus.uow)), 200


def _lignes_export(vue: str) -> Optional[list[dict]]:
    if vue == "produits":
        return views.produits(bus.uow, limite=sys.maxsize)["données"]
    if vue == "mouvements":
        return [
            {
                **ligne,
                "pièce_jointe": (ligne["pièce_jointe"] or {}).get("nom"),
            }
            for ligne in views.mouvements(bus.uow, _filtre_mouvements())
        ]
    if vue == "consommation":
        return views.consommation(bus.uow, _filtre_mouvements())
    if vue == "prets":
        prêts = views.prêts_outils(bus.uow)
        return prêts["en_prêt"] + prêts["disponibles"]
    return None


@app.route("/export/<vue>", methods=["GET"])
@connexion_requise
def export_endpoint(vue: str):
    """GET /export/<produits|mouvements|consommation|prets> : classeur XLSX."""
    lignes = _lignes_export(vue)
    if lignes is None:
        return "not found", 404
    contenu = export_excel.exporter_xlsx(lignes, titre=vue)
    return send_file(
        BytesIO(contenu),
        mimetype=TYPE_XLSX,
        as_attachment=True,
        download_name=f"{vue}.xlsx",
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=config.get_log_level(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    app.run(port=5005)
