"""
Tests end-to-end de l'API Flask.

Ces tests vérifient le flux complet :
HTTP request → Flask → Message Bus → Handlers → Inventaire en mémoire

Le bus du module Flask est remplacé par un bus neuf pour chaque test,
avec une horloge fixe et des notifications factices.
"""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from inventaire.entrypoints.flask_app import app
from inventaire.service_layer import bootstrap, unit_of_work


@pytest.fixture
def client(horloge, notifications):
    """Client de test Flask avec le bus injecté."""
    import inventaire.entrypoints.flask_app as flask_module

    original_bus = flask_module.bus
    flask_module.bus = bootstrap.bootstrap(
        uow=unit_of_work.InMemoryUnitOfWork(),
        notifications_adapter=notifications,
        horloge=horloge,
    )
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield client

    flask_module.bus = original_bus


def connecter(client, email: str = "admin@tmf.fr", mot_de_passe: str = "admin"):
    return client.post("/login", json={"email": email, "mot_de_passe": mot_de_passe})


@pytest.fixture
def admin(client):
    connecter(client)
    return client


@pytest.fixture
def catalogue(admin):
    """Un produit RJ45 (180 en stock, seuil 40) et une technicienne."""
    admin.post("/produits", json={
        "id": "prod-rj45",
        "nom": "Câble RJ45 Cat6 - 3m",
        "categorie": "Réseau",
        "quantite_initiale": 180,
        "seuil": 40,
        "message_alerte": "Commander 200 câbles",
    })
    admin.post("/techniciens", json={
        "id": "tech-ines",
        "nom": "Inès Martin",
        "email": "Ines@TMF.fr",
        "equipe": "Équipe Nord",
    })
    return admin


class TestAuthentification:
    def test_lecture_sans_session(self, client):
        assert client.get("/produits").status_code == 401

    def test_mauvais_mot_de_passe(self, client):
        response = connecter(client, mot_de_passe="faux")
        assert response.status_code == 401

    def test_connexion_retourne_le_rôle(self, client):
        response = connecter(client)
        assert response.status_code == 200
        assert response.get_json()["rôle"] == "ADMIN"

    def test_un_lecteur_ne_peut_pas_écrire(self, client):
        connecter(client, "lecteur@tmf.fr", "lecteur")

        assert client.get("/produits").status_code == 200
        response = client.post("/produits", json={"nom": "Gaine", "categorie": "Électricité"})
        assert response.status_code == 403

    def test_déconnexion(self, admin):
        assert admin.post("/logout").status_code == 204
        assert admin.get("/produits").status_code == 401


class TestProduits:
    def test_créer_puis_lire(self, admin):
        response = admin.post("/produits", json={"nom": "Gaine", "categorie": "Électricité"})
        assert response.status_code == 201
        produit_id = response.get_json()["id"]

        produit = admin.get(f"/produits/{produit_id}").get_json()
        assert produit["nom"] == "Gaine"
        assert produit["disponible"] == 0
        assert produit["statut"] == "RUPTURE"

    def test_nom_obligatoire(self, admin):
        response = admin.post("/produits", json={"nom": "  ", "categorie": "Réseau"})
        assert response.status_code == 400

    def test_modifier(self, catalogue):
        response = catalogue.put("/produits/prod-rj45", json={
            "nom": "Câble RJ45 Cat6 - 5m", "categorie": "Réseau", "quantite_initiale": 180, "seuil": 10,
        })
        assert response.status_code == 200
        assert catalogue.get("/produits/prod-rj45").get_json()["seuil"] == 10

    def test_recherche_et_pagination(self, catalogue):
        catalogue.post("/produits", json={"nom": "Gaine", "categorie": "Électricité"})

        résultat = catalogue.get("/produits?recherche=rj45").get_json()
        assert [p["id"] for p in résultat["données"]] == ["prod-rj45"]

        page = catalogue.get("/produits?tri=nom&limite=1").get_json()
        assert page["total"] == 2
        assert page["page_suivante"] is True
        assert page["données"][0]["id"] == "prod-rj45"

    def test_tri_inconnu(self, admin):
        assert admin.get("/produits?tri=prix").status_code == 400

    def test_ordre_inconnu(self, admin):
        assert admin.get("/produits?tri=nom&ordre=croissant").status_code == 400

    @pytest.mark.parametrize("champ", ["categorie", "unite", "message_alerte"])
    def test_champ_texte_null_ou_mal_typé(self, admin, champ):
        payload = {"nom": "Gaine", "categorie": "Électricité"}

        response = admin.post("/produits", json={**payload, champ: 12})
        assert response.status_code == 400

        if champ == "categorie":
            response = admin.post("/produits", json={**payload, champ: None})
            assert response.status_code == 400

    def test_corps_json_qui_n_est_pas_un_objet(self, admin):
        assert admin.post("/produits", json=["Gaine"]).status_code == 400

    def test_baisser_l_initial_sous_les_sorties_est_refusé(self, catalogue):
        catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 170,
        })

        response = catalogue.put("/produits/prod-rj45", json={
            "nom": "Câble RJ45 Cat6 - 3m", "categorie": "Réseau", "quantite_initiale": 0,
        })
        assert response.status_code == 400
        assert catalogue.get("/produits/prod-rj45").get_json()["disponible"] == 10

    def test_produit_introuvable(self, admin):
        assert admin.get("/produits/absent").status_code == 404

    def test_supprimer_un_produit_supprime_ses_mouvements(self, catalogue):
        catalogue.post("/mouvements/entree", json={"produit_id": "prod-rj45", "quantite": 5})

        assert catalogue.delete("/produits/prod-rj45").status_code == 204
        assert catalogue.get("/mouvements").get_json() == []


class TestMouvements:
    def test_scénario_réapprovisionnement_puis_sortie(self, catalogue, notifications):
        response = catalogue.post("/mouvements/entree", json={
            "produit_id": "prod-rj45", "quantite": 50, "numero_facture": "FA-2025-001",
        })
        assert response.status_code == 201

        response = catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 200,
        })
        assert response.status_code == 201

        produit = catalogue.get("/produits/prod-rj45").get_json()
        assert produit["disponible"] == 30
        assert produit["statut"] == "ALERTE"
        assert len(notifications.envoyées) == 1

        response = catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 40,
        })
        assert response.status_code == 400
        assert "Stock insuffisant" in response.get_json()["message"]
        assert catalogue.get("/produits/prod-rj45").get_json()["disponible"] == 30

    @pytest.mark.parametrize("quantite", [2.9, 0.5, True])
    def test_quantité_non_entière_refusée_sans_troncature(self, catalogue, quantite):
        response = catalogue.post("/mouvements/entree", json={
            "produit_id": "prod-rj45", "quantite": quantite,
        })

        assert response.status_code == 400
        assert "Entier attendu" in response.get_json()["message"]
        assert catalogue.get("/mouvements").get_json() == []
        assert catalogue.get("/produits/prod-rj45").get_json()["disponible"] == 180

    def test_quantité_flottante_entière_acceptée(self, catalogue):
        response = catalogue.post("/mouvements/entree", json={
            "produit_id": "prod-rj45", "quantite": 5.0,
        })
        assert response.status_code == 201
        assert catalogue.get("/produits/prod-rj45").get_json()["disponible"] == 185

    @pytest.mark.parametrize(
        "piece_jointe",
        [
            {"nom": "bon.png"},
            {"data_url": "data:image/png;base64,AA"},
            "bon.png",
            {"nom": 1, "data_url": "x"},
        ],
    )
    def test_pièce_jointe_json_incomplète(self, catalogue, piece_jointe):
        response = catalogue.post("/mouvements/entree", json={
            "produit_id": "prod-rj45", "quantite": 5, "piece_jointe": piece_jointe,
        })
        assert response.status_code == 400

    def test_sortie_sans_technicien(self, catalogue):
        response = catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "quantite": 1,
        })
        assert response.status_code == 400

    def test_quantité_non_numérique(self, catalogue):
        response = catalogue.post("/mouvements/entree", json={
            "produit_id": "prod-rj45", "quantite": "beaucoup",
        })
        assert response.status_code == 400

    def test_entrée_avec_bon_de_livraison(self, catalogue):
        response = catalogue.post(
            "/mouvements/entree",
            data={
                "produit_id": "prod-rj45",
                "quantite": "20",
                "commentaire": "Livraison fournisseur",
                "fichier": (BytesIO(b"\x89PNG"), "bon.png", "image/png"),
            },
            content_type="multipart/form-data",
        )
        assert response.status_code == 201

        [mouvement] = catalogue.get("/mouvements").get_json()
        assert mouvement["type"] == "ENTREE"
        assert mouvement["pièce_jointe"]["nom"] == "bon.png"
        assert mouvement["pièce_jointe"]["data_url"].startswith("data:image/png;base64,")

    def test_pièce_jointe_qui_n_est_pas_une_image(self, catalogue):
        response = catalogue.post(
            "/mouvements/entree",
            data={
                "produit_id": "prod-rj45",
                "quantite": "20",
                "fichier": (BytesIO(b"%PDF"), "facture.pdf", "application/pdf"),
            },
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_filtres_du_registre(self, catalogue):
        catalogue.post("/mouvements/entree", json={"produit_id": "prod-rj45", "quantite": 5})
        catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 2,
        })

        tous = catalogue.get("/mouvements?technicien_id=all").get_json()
        assert [m["type"] for m in tous] == ["SORTIE", "ENTREE"]
        assert tous[0]["nom_technicien"] == "Inès Martin"
        assert tous[0]["nom_produit"] == "Câble RJ45 Cat6 - 3m"

        du_jour = catalogue.get("/mouvements?du=2025-03-10&au=2025-03-10").get_json()
        assert len(du_jour) == 2
        assert catalogue.get("/mouvements?du=2025-03-11").get_json() == []

        par_technicien = catalogue.get("/mouvements?technicien_id=tech-ines").get_json()
        assert [m["type"] for m in par_technicien] == ["SORTIE"]

    def test_consommation(self, catalogue):
        catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 3,
        })

        [ligne] = catalogue.get("/consommation").get_json()
        assert ligne["nom_technicien"] == "Inès Martin"
        assert ligne["équipe"] == "Équipe Nord"
        assert ligne["quantité"] == 3

    def test_supprimer_un_technicien_conserve_ses_sorties(self, catalogue):
        catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 3,
        })

        assert catalogue.delete("/techniciens/tech-ines").status_code == 204

        [mouvement] = catalogue.get("/mouvements").get_json()
        assert mouvement["technicien_id"] is None
        assert mouvement["nom_technicien"] == "Technicien inconnu"


class TestTechniciens:
    def test_email_normalisé(self, catalogue):
        [technicien] = catalogue.get("/techniciens").get_json()
        assert technicien["email"] == "ines@tmf.fr"

    @pytest.mark.parametrize("champ", ["email", "equipe"])
    def test_champ_obligatoire_null(self, admin, champ):
        payload = {"nom": "Marc", "email": "marc@tmf.fr", "equipe": "Sud", champ: None}
        assert admin.post("/techniciens", json=payload).status_code == 400

    def test_email_déjà_utilisé(self, catalogue):
        response = catalogue.post("/techniciens", json={
            "nom": "Inès Bis", "email": " INES@tmf.fr ", "equipe": "Sud",
        })

        assert response.status_code == 400
        assert len(catalogue.get("/techniciens").get_json()) == 1

    def test_email_invalide(self, admin):
        response = admin.post("/techniciens", json={
            "nom": "Marc", "email": "pas-un-email", "equipe": "Sud",
        })
        assert response.status_code == 400


class TestPrêts:
    def test_affecter_puis_retourner(self, catalogue):
        response = catalogue.post("/prets", json={
            "id": "pret-perceuse", "nom_outil": "Perceuse", "categorie": "Électroportatif",
        })
        assert response.status_code == 201

        response = catalogue.post("/prets/pret-perceuse/affecter", json={
            "technicien_id": "tech-ines", "date_retour_prevue": "2025-03-20", "notes": "Chantier A",
        })
        assert response.status_code == 200

        prêts = catalogue.get("/prets").get_json()
        [ligne] = prêts["en_prêt"]
        assert ligne["nom_technicien"] == "Inès Martin"
        assert prêts["disponibles"] == []

        assert catalogue.post("/prets/pret-perceuse/retour").status_code == 200
        prêt = catalogue.get("/prets/pret-perceuse").get_json()
        assert prêt["statut"] == "DISPONIBLE"
        assert prêt["technicien_id"] is None

    def test_prêt_pour_un_technicien_inconnu(self, catalogue):
        response = catalogue.post("/prets", json={
            "id": "pret-x", "nom_outil": "Perceuse", "categorie": "Électroportatif",
            "technicien_id": "tech-fantome",
        })

        assert response.status_code == 400
        assert catalogue.get("/prets/pret-x").status_code == 404

    def test_prêt_créé_déjà_confié_est_daté(self, catalogue):
        catalogue.post("/prets", json={
            "id": "pret-x", "nom_outil": "Perceuse", "categorie": "Électroportatif",
            "technicien_id": "tech-ines",
        })

        prêt = catalogue.get("/prets/pret-x").get_json()
        assert prêt["statut"] == "EN_COURS"
        assert prêt["prêté_le"] is not None

    @pytest.mark.parametrize("champ", ["notes", "numero_serie", "categorie"])
    def test_champ_texte_mal_typé(self, admin, champ):
        payload = {"nom_outil": "Perceuse", "categorie": "Électroportatif", champ: ["x"]}
        assert admin.post("/prets", json=payload).status_code == 400

    def test_statut_inconnu(self, admin):
        response = admin.post("/prets", json={
            "nom_outil": "Perceuse", "categorie": "Électroportatif", "statut": "PERDU",
        })
        assert response.status_code == 400

    def test_prêt_introuvable(self, admin):
        assert admin.get("/prets/absent").status_code == 404


class TestTableauDeBordEtExports:
    def test_tableau_de_bord(self, catalogue):
        stats = catalogue.get("/tableau-de-bord").get_json()
        assert stats["total_produits"] == 1
        assert stats["techniciens"] == 1

    def test_alertes(self, catalogue):
        catalogue.post("/mouvements/sortie", json={
            "produit_id": "prod-rj45", "technicien_id": "tech-ines", "quantite": 180,
        })

        [alerte] = catalogue.get("/alertes").get_json()
        assert alerte["produit_id"] == "prod-rj45"
        assert alerte["statut"] == "RUPTURE"

    def test_export_produits(self, catalogue):
        response = catalogue.get("/export/produits")

        assert response.status_code == 200
        feuille = load_workbook(BytesIO(response.data)).active
        entêtes = [cellule.value for cellule in feuille[1]]
        assert "nom" in entêtes
        assert feuille.cell(row=2, column=entêtes.index("nom") + 1).value == "Câble RJ45 Cat6 - 3m"

    def test_export_inconnu(self, admin):
        assert admin.get("/export/factures").status_code == 404
