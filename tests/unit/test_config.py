from inventaire import config


def test_valeurs_par_défaut(monkeypatch):
    for variable in ("SMTP_HOST", "SMTP_PORT", "INVENTAIRE_ALERT_EMAIL", "INVENTAIRE_LOG_LEVEL"):
        monkeypatch.delenv(variable, raising=False)

    assert config.get_smtp_host_and_port() == {"smtp_host": "localhost", "smtp_port": 587}
    assert config.get_alert_email() == "stock@example.com"
    assert config.get_log_level() == "INFO"


def test_lues_dans_l_environnement(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.tmf.fr")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("INVENTAIRE_LOG_LEVEL", "debug")

    assert config.get_smtp_host_and_port() == {"smtp_host": "smtp.tmf.fr", "smtp_port": 2525}
    assert config.get_log_level() == "DEBUG"
