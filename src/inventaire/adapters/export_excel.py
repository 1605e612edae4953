"""
Export des tableaux au format XLSX (openpyxl).

Chaque vue (produits, mouvements, consommation, prêts) est une liste
de dictionnaires ; les clés préfixées par "_" sont internes et ne
sont pas exportées.
"""

from __future__ import annotations

from io import BytesIO
from typing import Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

LARGEUR_MAX = 50


def nettoyer(valeur: object) -> object:
    """Garde les nombres numériques et retire les caractères de contrôle du texte."""
    if valeur is None:
        return None
    if isinstance(valeur, bool):
        return "oui" if valeur else "non"
    if isinstance(valeur, (int, float)):
        return valeur
    return ILLEGAL_CHARACTERS_RE.sub("", str(valeur))


def colonnes_exportables(lignes: Sequence[dict]) -> list[str]:
    colonnes: list[str] = []
    for ligne in lignes:
        for clé in ligne:
            if not clé.startswith("_") and clé not in colonnes:
                colonnes.append(clé)
    return colonnes


def exporter_xlsx(
    lignes: Sequence[dict],
    titre: str = "Feuille1",
    colonnes: Sequence[str] | None = None,
) -> bytes:
    """Construit un classeur d'une feuille et retourne son contenu binaire."""
    colonnes = list(colonnes) if colonnes else colonnes_exportables(lignes)

    classeur = Workbook()
    feuille = classeur.active
    # Excel limite le nom d'une feuille à 31 caractères
    feuille.title = titre[:31]

    feuille.append(colonnes)
    entête = Font(bold=True, color="FFFFFF")
    fond = PatternFill("solid", fgColor="137C8B")
    for cellule in feuille[1]:
        cellule.font = entête
        cellule.fill = fond
        cellule.alignment = Alignment(horizontal="center", vertical="center")

    for ligne in lignes:
        feuille.append([nettoyer(ligne.get(colonne)) for colonne in colonnes])

    for index, colonne in enumerate(colonnes, start=1):
        largeur = max(
            [len(colonne)] + [len(str(l.get(colonne) or "")) for l in lignes]
        )
        feuille.column_dimensions[get_column_letter(index)].width = min(largeur + 2, LARGEUR_MAX)
    feuille.freeze_panes = "A2"

    sortie = BytesIO()
    classeur.save(sortie)
    return sortie.getvalue()
