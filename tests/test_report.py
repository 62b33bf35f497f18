# tests/test_report.py
import smtplib
from datetime import date

import pytest

from invoice_scan import report as report_module
from invoice_scan.config import Settings
from invoice_scan.errors import UpstreamError
from invoice_scan.models import ExpenseRow
from invoice_scan.report import SmtpMailer, build_mailer, build_report, expense_rows, month_label


def test_expense_rows_skip_non_objects_and_coerce_totals():
    rows = expense_rows([{"supplier": "תנובה", "total": "₪ 1,234.50"}, "junk", {"total": None}])

    assert [(r.supplier, r.total) for r in rows] == [("תנובה", 1234.5), ("", 0.0)]


def test_build_report():
    rows = [
        ExpenseRow(date="1.10.2026", supplier="תנובה", category="חומרי גלם", total=375),
        ExpenseRow(date="3.10.2026", supplier="נכסי הכרמל", category="שכירות", total=12000),
    ]

    report = build_report(rows, "דנה", "owner@example.com", today=date(2026, 10, 19))

    assert report.total == 12375
    assert report.row_count == 2
    assert report.subject.endswith("19.10.2026")
    assert "אוקטובר 2026" in report.html
    assert "₪12,000.00" in report.html
    assert "₪12,375.00" in report.html
    assert report.html.count("<tr>") == 2


def test_report_escapes_user_text():
    rows = [ExpenseRow(supplier="<script>alert(1)</script>", total=1)]

    report = build_report(rows, "<b>x</b>", None, today=date(2026, 1, 5))

    assert "<script>" not in report.html
    assert "&lt;script&gt;" in report.html
    assert "<b>x</b>" not in report.html


def test_month_label():
    assert month_label(date(2026, 1, 31)) == "ינואר 2026"
    assert month_label(date(2026, 12, 1)) == "דצמבר 2026"


def test_build_mailer_needs_smtp_and_recipient():
    assert build_mailer(Settings()) is None
    smtp = dict(smtp_host="smtp.example.com", smtp_user="pos@example.com", smtp_password="pw")
    assert build_mailer(Settings(**smtp)) is None
    mailer = build_mailer(Settings(accountant_email="cpa@example.com", **smtp))
    assert isinstance(mailer, SmtpMailer)
    assert (mailer.port, mailer.recipient) == (587, "cpa@example.com")


class FakeSmtp:
    instances = []
    fail_login = False

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.messages = []
        FakeSmtp.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        if self.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSmtp.instances = []
    FakeSmtp.fail_login = False
    monkeypatch.setattr(report_module.smtplib, "SMTP", FakeSmtp)
    monkeypatch.setattr(report_module.smtplib, "SMTP_SSL", FakeSmtp)
    return FakeSmtp


def _report():
    return build_report([ExpenseRow(supplier="תנובה", total=10)], "דנה", "owner@example.com")


def test_smtp_mailer_sends_html_to_accountant(fake_smtp):
    mailer = SmtpMailer("smtp.example.com", 587, "pos@example.com", "pw", "cpa@example.com")

    mailer.send(_report(), cc="owner@example.com")

    [smtp] = fake_smtp.instances
    assert smtp.started_tls
    [message] = smtp.messages
    assert message["To"] == "cpa@example.com"
    assert message["Cc"] == "owner@example.com"
    assert "pos@example.com" in message["From"]
    html_part = message.get_body(preferencelist=("html",))
    assert "תנובה" in html_part.get_content()


def test_smtp_mailer_uses_implicit_tls_on_465(fake_smtp):
    SmtpMailer("smtp.example.com", 465, "pos@example.com", "pw", "cpa@example.com").send(_report())

    [smtp] = fake_smtp.instances
    assert smtp.port == 465
    assert not smtp.started_tls
    assert smtp.messages[0]["Cc"] is None


def test_smtp_failure_raises_upstream_error(fake_smtp):
    fake_smtp.fail_login = True
    mailer = SmtpMailer("smtp.example.com", 587, "pos@example.com", "pw", "cpa@example.com")

    with pytest.raises(UpstreamError):
        mailer.send(_report())
