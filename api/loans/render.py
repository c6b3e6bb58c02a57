"""
HTML fragment for a loan record.

Every string that came from the Record Service is escaped before it lands in
markup; the amount is always shown with two decimals.
"""

from __future__ import annotations

import html
import re

from .schemas import LoanRecord

_NON_CLASS_CHARS = re.compile(r"\s+")


def format_amount(amount: float) -> str:
    return f"{amount:.2f}"


def status_class(loan_status: str) -> str:
    # "Under Review" -> "status-Under-Review"
    return "status-" + html.escape(_NON_CLASS_CHARS.sub("-", loan_status.strip()))


def _row(label: str, value_html: str, *, css: str = "info-value") -> str:
    return (
        '    <div class="info-row">\n'
        f'        <span class="info-label">{label}:</span>\n'
        f'        <span class="{css}">{value_html}</span>\n'
        "    </div>\n"
    )


def render_record(record: LoanRecord) -> str:
    rows = [
        _row("First Name", html.escape(record.first_name)),
        _row("Last Name", html.escape(record.last_name)),
        _row("Date of Birth", html.escape(record.date_of_birth)),
        _row("Loan Amount Requested", "$" + format_amount(record.loan_amount_requested)),
        _row(
            "Loan Status",
            html.escape(record.loan_status),
            css=f"info-value {status_class(record.loan_status)}",
        ),
    ]
    return '<div class="space-y-3">\n' + "".join(rows) + "</div>\n"
