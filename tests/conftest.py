"""
Configuration partagée pour les tests.

Fournit une horloge déterministe et des notifications factices,
pour que les tests de la service layer et de l'API ne dépendent
ni de l'heure courante ni d'un serveur SMTP.
"""

from datetime import datetime, timedelta

import pytest

from inventaire.adapters.notifications import AbstractNotifications


class HorlogeFixe:
    """Horloge qui avance d'une minute à chaque lecture (horodatages uniques)."""

    def __init__(self, départ: datetime = datetime(2025, 3, 10, 8, 0)):
        self.instant = départ

    def __call__(self) -> datetime:
        courant = self.instant
        self.instant += timedelta(minutes=1)
        return courant


class FakeNotifications(AbstractNotifications):
    """Capture les notifications envoyées pour vérification dans les tests."""

    def __init__(self) -> None:
        self.envoyées: list[tuple[str, str, str]] = []

    def send(self, destination: str, sujet: str, message: str) -> None:
        self.envoyées.append((destination, sujet, message))


@pytest.fixture
def horloge():
    return HorlogeFixe()


@pytest.fixture
def notifications():
    return FakeNotifications()
