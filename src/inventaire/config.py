"""
Configuration de l'application.

Toutes les valeurs viennent de variables d'environnement, avec des
valeurs par défaut adaptées au développement local.
"""

import os


def get_smtp_host_and_port() -> dict:
    host = os.environ.get("SMTP_HOST", "localhost")
    port = int(os.environ.get("SMTP_PORT", 587))
    return dict(smtp_host=host, smtp_port=port)


def get_sender_email() -> str:
    return os.environ.get("INVENTAIRE_SENDER_EMAIL", "inventaire@example.com")


def get_alert_email() -> str:
    """Destinataire des alertes de stock bas et de rupture."""
    return os.environ.get("INVENTAIRE_ALERT_EMAIL", "stock@example.com")


def get_secret_key() -> str:
    """Clé de signature du cookie de session Flask."""
    return os.environ.get("INVENTAIRE_SECRET_KEY", "dev-secret-a-changer")


def get_log_level() -> str:
    return os.environ.get("INVENTAIRE_LOG_LEVEL", "INFO").upper()
