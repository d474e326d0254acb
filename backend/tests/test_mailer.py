import asyncio
import smtplib

from fisio.services import mailer


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.messages.append(msg)


def test_reset_email_is_sent_through_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMTP_USER", "clinica@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "pw")
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)

    link = mailer.password_reset_link("abc.def")
    assert asyncio.run(mailer.send_password_reset_email("ana@example.com", link)) is True

    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 2525)
    assert server.logged_in == ("clinica@example.com", "pw")
    msg = server.messages[0]
    assert msg["To"] == "ana@example.com"
    assert msg["From"] == "clinica@example.com"
    assert "token=abc.def" in msg.get_payload(decode=True).decode("utf-8")


def test_reset_email_without_smtp_host(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    assert asyncio.run(mailer.send_password_reset_email("ana@example.com", "http://x")) is False


def test_reset_email_smtp_failure_is_reported(monkeypatch):
    class BrokenSMTP(FakeSMTP):
        def send_message(self, msg):
            raise smtplib.SMTPRecipientsRefused({})

    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(mailer.smtplib, "SMTP", BrokenSMTP)
    assert asyncio.run(mailer.send_password_reset_email("ana@example.com", "http://x")) is False
