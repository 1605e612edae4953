"""
Tests d'intégration des adapters sans état : identité, pièces jointes
et export XLSX (relu avec openpyxl).
"""

import base64
from io import BytesIO

import pytest
from openpyxl import load_workbook

from inventaire.adapters import export_excel, identite, pieces_jointes


@pytest.fixture(scope="module")
def identités():
    return identite.IdentitésEnDur()


class TestIdentités:
    def test_authentifie_un_administrateur(self, identités):
        utilisateur = identités.authentifier("admin@tmf.fr", "admin")
        assert utilisateur.rôle == identite.Rôle.ADMIN
        assert utilisateur.est_admin

    def test_email_insensible_à_la_casse_et_aux_espaces(self, identités):
        utilisateur = identités.authentifier("  Lecteur@TMF.fr ", "lecteur")
        assert utilisateur.rôle == identite.Rôle.LECTEUR
        assert not utilisateur.est_admin

    @pytest.mark.parametrize(
        "email, mot_de_passe",
        [("admin@tmf.fr", "mauvais"), ("inconnu@tmf.fr", "admin"), ("", "")],
    )
    def test_refuse_des_identifiants_invalides(self, identités, email, mot_de_passe):
        with pytest.raises(identite.IdentifiantsInvalides):
            identités.authentifier(email, mot_de_passe)


class TestPiècesJointes:
    def test_encode_une_image_en_data_url(self):
        pièce = pieces_jointes.encoder_pièce_jointe("bon.png", b"\x89PNG", "image/png")

        assert pièce.nom == "bon.png"
        préfixe, contenu = pièce.data_url.split(",", 1)
        assert préfixe == "data:image/png;base64"
        assert base64.b64decode(contenu) == b"\x89PNG"

    def test_refuse_un_fichier_qui_n_est_pas_une_image(self):
        with pytest.raises(pieces_jointes.PièceJointeInvalide):
            pieces_jointes.encoder_pièce_jointe("facture.pdf", b"%PDF", "application/pdf")

    def test_refuse_un_fichier_vide(self):
        with pytest.raises(pieces_jointes.PièceJointeInvalide):
            pieces_jointes.encoder_pièce_jointe("vide.png", b"", "image/png")


class TestExportExcel:
    def test_exporte_les_colonnes_publiques(self):
        lignes = [
            {"_interne": 1, "nom": "Câble RJ45", "disponible": 30},
            {"_interne": 2, "nom": "Gaine\x07", "disponible": 0, "unité": None},
        ]

        contenu = export_excel.exporter_xlsx(lignes, titre="produits")

        feuille = load_workbook(BytesIO(contenu)).active
        assert feuille.title == "produits"
        valeurs = [[cellule.value for cellule in rangée] for rangée in feuille.iter_rows()]
        assert valeurs[0] == ["nom", "disponible", "unité"]
        assert valeurs[1] == ["Câble RJ45", 30, None]
        assert valeurs[2] == ["Gaine", 0, None]

    def test_nettoyer(self):
        assert export_excel.nettoyer(None) is None
        assert export_excel.nettoyer(True) == "oui"
        assert export_excel.nettoyer(12) == 12
        assert export_excel.nettoyer("a\x00b") == "ab"
