"""Mail transport selection and SMTP envelope tests."""

import pytest

from payplan.common.config import CommonSettings
from payplan.services.notification import transport as transport_module
from payplan.services.notification.transport import (
    ConsoleTransport,
    SmtpTransport,
    TransportError,
    build_transport,
)


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in = (username, password)

    def send_message(self, message):
        self.messages.append(message)


def test_build_transport_by_name():
    assert isinstance(build_transport(CommonSettings(email_transport="console")), ConsoleTransport)
    smtp = build_transport(CommonSettings(email_transport="SMTP", smtp_host=" mail.test ", smtp_from="a@b.co"))
    assert isinstance(smtp, SmtpTransport)
    assert smtp.host == "mail.test"
    with pytest.raises(TransportError):
        build_transport(CommonSettings(email_transport="pigeon"))


def test_unconfigured_smtp_raises():
    with pytest.raises(TransportError, match="not configured"):
        SmtpTransport(host="", port=587, sender="").send("to@x.co", "s", "<p>h</p>", "t")


def test_smtp_sends_multipart_message(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(transport_module.smtplib, "SMTP", FakeSMTP)
    sender = SmtpTransport(host="mail.test", port=587, sender="ops@x.co", username="u", password="p", timeout=3)

    result = sender.send("client@x.co", "Subject", "<p>hello</p>", "hello")

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port, smtp.timeout) == ("mail.test", 587, 3)
    assert smtp.started_tls
    assert smtp.logged_in == ("u", "p")
    message = smtp.messages[0]
    assert message["To"] == "client@x.co"
    assert message["Message-ID"] == result.message_id
    assert message.is_multipart()
