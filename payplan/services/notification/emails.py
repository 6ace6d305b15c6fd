"""Quarterly payment-instruction email rendering (Jinja2, HTML + plain text)."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

TEMPLATE_DIR = Path(__file__).parent / "templates"
CHECKLIST_PLACEHOLDER = "{{CHECKLIST_LINK}}"
EMPTY = "-"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html.j2",), default_for_string=False),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def format_currency(amount: Decimal | None) -> str:
    if amount is None:
        return EMPTY
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_date(value: date | None) -> str:
    if value is None:
        return EMPTY
    return f"{value:%b} {value.day}, {value.year}"


def jurisdiction_label(scope: str, jurisdiction_code: str | None) -> str:
    if scope == "state":
        return f"State ({jurisdiction_code})" if jurisdiction_code else "State"
    return "Federal"


def build_quarterly_instructions(client, quarter: int, tax_year: int, obligations, checklist_url: str) -> RenderedEmail:
    """Render the instructions email for one client's quarter."""

    recipient_name = client.addressee_name or client.name or "there"
    subject = f"{client.name or client.addressee_name or 'Client'} - Q{quarter} {tax_year} estimated tax payments"
    lines = [
        {
            "label": jurisdiction_label(obligation.scope, obligation.jurisdiction_code),
            "payment_type": obligation.payment_type,
            "notes": obligation.notes or "",
            "due": format_date(obligation.due_date),
            "amount": format_currency(obligation.amount),
            "method": obligation.method or EMPTY,
        }
        for obligation in obligations
    ]
    context = {
        "recipient_name": recipient_name,
        "quarter": quarter,
        "tax_year": tax_year,
        "lines": lines,
        "checklist_url": checklist_url,
    }
    html = _env.get_template("quarterly_instructions.html.j2").render(**context)
    text = _env.get_template("quarterly_instructions.txt.j2").render(**context)
    return RenderedEmail(subject=subject, html=html, text=text)
