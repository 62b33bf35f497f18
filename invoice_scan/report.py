# invoice_scan/report.py
"""Monthly expense report for the accountant: HTML rendering and SMTP delivery."""
from __future__ import annotations

import smtplib
from datetime import date
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, List, Optional, Protocol

from jinja2 import Template

from .config import Settings
from .config_labels import (
    HEBREW_MONTHS,
    REPORT_SENDER_NAME,
    REPORT_SUBJECT_PREFIX,
    REPORT_TITLE,
)
from .errors import UpstreamError
from .lang_utils import format_he_date
from .logging_utils import get_logger
from .models import ExpenseReport, ExpenseRow

log = get_logger(__name__)

_CELL = "padding: 8px; border-bottom: 1px solid #eee;"

REPORT_TEMPLATE = Template(
    """<div dir="rtl" style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #0df280;">{{ title }}</h2>
  <p>שלום,</p>
  <p>מצורף ריכוז הוצאות עבור חודש {{ month }}.</p>
  <p>שולח: <strong>{{ user_name }}</strong> ({{ user_email }})</p>
  <table style="width: 100%; border-collapse: collapse; margin-top: 20px;">
    <thead>
      <tr style="background-color: #f8f9fa;">
        <th style="padding: 8px; text-align: right;">תאריך</th>
        <th style="padding: 8px; text-align: right;">ספק</th>
        <th style="padding: 8px; text-align: right;">קטגוריה</th>
        <th style="padding: 8px; text-align: right;">סכום</th>
      </tr>
    </thead>
    <tbody>
{%- for row in rows %}
      <tr>
        <td style="{{ cell }}">{{ row.date }}</td>
        <td style="{{ cell }}">{{ row.supplier }}</td>
        <td style="{{ cell }}">{{ row.category }}</td>
        <td style="{{ cell }} font-weight: bold;">{{ shekels(row.total) }}</td>
      </tr>
{%- endfor %}
    </tbody>
    <tfoot>
      <tr style="background-color: #f8f9fa; font-size: 1.1em;">
        <td colspan="3" style="padding: 12px; text-align: right; font-weight: bold;">סה״כ לתשלום:</td>
        <td style="padding: 12px; text-align: right; font-weight: bold; color: #0df280;">{{ shekels(total) }}</td>
      </tr>
    </tfoot>
  </table>
  <p style="margin-top: 30px; font-size: 0.8em; color: #666;">הופק באמצעות Antigravity Expense Manager</p>
</div>
""",
    autoescape=True,
)


def format_shekels(amount: float) -> str:
    return f"₪{amount:,.2f}"


def month_label(day: date) -> str:
    return f"{HEBREW_MONTHS[day.month - 1]} {day.year}"


def expense_rows(expenses: List[Any]) -> List[ExpenseRow]:
    """Report rows from the client's saved invoices; non-objects are skipped."""
    rows: List[ExpenseRow] = []
    for i, expense in enumerate(expenses):
        if not isinstance(expense, dict):
            log.debug("Skipping expense %d: not an object", i)
            continue
        rows.append(ExpenseRow.model_validate(expense))
    return rows


def build_report(
    rows: List[ExpenseRow],
    user_name: Optional[str],
    user_email: Optional[str],
    today: Optional[date] = None,
) -> ExpenseReport:
    today = today or date.today()
    total = round(sum(row.total for row in rows), 2)
    html = REPORT_TEMPLATE.render(
        title=REPORT_TITLE,
        month=month_label(today),
        user_name=user_name or "",
        user_email=user_email or "",
        rows=rows,
        total=total,
        cell=_CELL,
        shekels=format_shekels,
    )
    return ExpenseReport(
        subject=f"{REPORT_SUBJECT_PREFIX} - {format_he_date(today)}",
        html=html,
        total=total,
        row_count=len(rows),
    )


class ReportMailer(Protocol):
    def send(self, report: ExpenseReport, cc: Optional[str] = None) -> None: ...


class SmtpMailer:
    """Sends reports to the accountant; port 465 uses implicit TLS, others STARTTLS."""

    def __init__(self, host: str, port: int, user: str, password: str, recipient: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.recipient = recipient

    def _message(self, report: ExpenseReport, cc: Optional[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((REPORT_SENDER_NAME, self.user))
        message["To"] = self.recipient
        if cc:
            message["Cc"] = cc
        message["Subject"] = report.subject
        message.set_content("This report requires an HTML-capable mail client.")
        message.add_alternative(report.html, subtype="html")
        return message

    def send(self, report: ExpenseReport, cc: Optional[str] = None) -> None:
        message = self._message(report, cc)
        try:
            if self.port == 465:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as smtp:
                    smtp.login(self.user, self.password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                    smtp.starttls()
                    smtp.login(self.user, self.password)
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise UpstreamError(f"SMTP delivery failed: {exc}") from exc
        log.info("Expense report sent to %s (%d rows)", self.recipient, report.row_count)


def build_mailer(settings: Settings) -> Optional[SmtpMailer]:
    """None when SMTP or the accountant address is missing; reports are then only previewed."""
    if not settings.smtp_configured:
        log.warning("SMTP not configured; expense reports will be generated but not sent")
        return None
    if not settings.accountant_email:
        log.warning("ACCOUNTANT_EMAIL not set; expense reports will be generated but not sent")
        return None
    return SmtpMailer(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        settings.accountant_email,
    )
