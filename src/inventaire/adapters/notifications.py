"""
Adapter pour les notifications.

Les alertes de stock (seuil atteint, rupture) partent par e-mail.
L'abstraction permet de remplacer le SMTP par un fake dans les tests.
"""

from __future__ import annotations

import abc
import smtplib
from email.message import EmailMessage

from inventaire import config


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour les notifications."""

    @abc.abstractmethod
    def send(self, destination: str, sujet: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """Implémentation concrète envoyant des emails via SMTP."""

    def __init__(self, smtp_host: str | None = None, smtp_port: int | None = None):
        défaut = config.get_smtp_host_and_port()
        self.smtp_host = smtp_host or défaut["smtp_host"]
        self.smtp_port = smtp_port or défaut["smtp_port"]
        self.expéditeur = config.get_sender_email()

    def send(self, destination: str, sujet: str, message: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = sujet
        msg["From"] = self.expéditeur
        msg["To"] = destination
        msg.set_content(message)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.send_message(msg)
