"""Instruction email rendering tests."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from payplan.services.notification.emails import (
    build_quarterly_instructions,
    format_currency,
    format_date,
    jurisdiction_label,
)


def _obligation(**overrides):
    values = {
        "scope": "federal",
        "jurisdiction_code": None,
        "payment_type": "Estimated",
        "notes": None,
        "due_date": date(2026, 4, 15),
        "amount": Decimal("5000.00"),
        "method": "electronic",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_formatters():
    assert format_currency(Decimal("5000")) == "$5,000.00"
    assert format_currency(Decimal("-12.5")) == "-$12.50"
    assert format_currency(None) == "-"
    assert format_date(date(2026, 4, 5)) == "Apr 5, 2026"
    assert format_date(None) == "-"
    assert jurisdiction_label("state", "CA") == "State (CA)"
    assert jurisdiction_label("federal", None) == "Federal"


def test_instructions_render_both_parts():
    client = SimpleNamespace(name="Acme LLC", addressee_name="Grace")
    email = build_quarterly_instructions(
        client,
        2,
        2026,
        [_obligation(), _obligation(scope="state", jurisdiction_code="NY", amount=None, method=None)],
        "https://portal.test/p/abc",
    )
    assert email.subject == "Acme LLC - Q2 2026 estimated tax payments"
    assert "Hi Grace," in email.text
    assert "- Federal: $5,000.00 due Apr 15, 2026" in email.text
    assert "- State (NY): - due Apr 15, 2026" in email.text
    assert 'href="https://portal.test/p/abc"' in email.html


def test_html_escapes_user_text():
    client = SimpleNamespace(name="<b>x</b>", addressee_name="")
    email = build_quarterly_instructions(client, 1, 2026, [_obligation(notes="<script>")], "https://x")
    assert "<script>" not in email.html
    assert "&lt;script&gt;" in email.html
    assert "Hi &lt;b&gt;x&lt;/b&gt;," in email.html
