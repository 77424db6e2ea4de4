import gzip
import logging
import os
from datetime import datetime

from Models.receiptModel import Receipt
from Services.receiptService import ReceiptService
from Utils import email as email_utils
from Utils.email import PaymentConfirmationNotifier, render_payment_confirmation
from Utils.logger import summarize_log_dir
from Utils.snapshots import OrderSnapshot, PaymentDetails

from conftest import BrokenStorage


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def sendmail(self, sender, recipients, message):
        FakeSMTP.sent.append((sender, recipients, message))


# ============================
# Email
# ============================
def test_confirmation_email_content(customer, paid_order):
    order = paid_order(customer)
    payment = PaymentDetails(method="bkash", transaction_id=None, paid_at=datetime(2025, 6, 1))

    subject, html, text = render_payment_confirmation(
        OrderSnapshot.from_order(order), payment, "https://fruitpanda.test/receipt/X"
    )

    assert subject == f"Payment Confirmed - Order {order.order_number}"
    assert "BDT 860.00" in html
    assert "Transaction ID: N/A" in text
    assert "01 June 2025" in text


def test_notifier_disabled_skips_sending(customer, paid_order):
    order = paid_order(customer)
    notifier = PaymentConfirmationNotifier({"SMTP_ENABLED": False})
    assert notifier(OrderSnapshot.from_order(order), PaymentDetails.for_order(order), "https://x/receipt/1") is False


def test_notifier_sends_over_smtp(monkeypatch, customer, paid_order):
    FakeSMTP.sent = []
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    order = OrderSnapshot.from_order(paid_order(customer))

    notifier = PaymentConfirmationNotifier({"SMTP_ENABLED": True, "EMAIL_SENDER": "shop@fruitpanda.com"})
    assert notifier(order, PaymentDetails(method="nagad"), "https://x/receipt/1") is True

    sender, recipients, message = FakeSMTP.sent[0]
    assert sender == "shop@fruitpanda.com"
    assert recipients == ["rahim@example.com"]
    assert "Payment Confirmed" in message


# ============================
# CLI
# ============================
def test_backfill_command(app, admin, customer, paid_order):
    order = paid_order(customer)

    result = app.test_cli_runner().invoke(args=["receipts:backfill"])

    assert result.exit_code == 0
    assert "Generated 1 receipts" in result.output
    assert Receipt.objects.get(order=order.id).pdf_path


def test_backfill_command_needs_admin(app, customer):
    result = app.test_cli_runner().invoke(args=["receipts:backfill", "--admin-email", "nobody@example.com"])
    assert result.exit_code != 0
    assert "No admin account found" in result.output


def test_regenerate_pdfs_command(app, tmp_path, customer, paid_order):
    order = paid_order(customer)
    ReceiptService(BrokenStorage(str(tmp_path))).backfill_missing_receipts(customer)
    assert Receipt.objects.get(order=order.id).pdf_path is None

    result = app.test_cli_runner().invoke(args=["receipts:regenerate-pdfs"])

    assert "Regenerated 1 PDFs (0 failed)" in result.output
    assert os.path.isfile(Receipt.objects.get(order=order.id).pdf_path)


# ============================
# Logging
# ============================
def test_payments_log_file(app):
    logging.getLogger("payments").info("Payment confirmed for ORD-1")
    for handler in logging.getLogger("payments").handlers:
        handler.flush()

    path = os.path.join(app.config["LOG_DIR"], "payments.log")
    with open(path, encoding="utf-8") as f:
        assert "Payment confirmed for ORD-1" in f.read()


def test_summarize_log_dir(tmp_path):
    (tmp_path / "app.log").write_text(
        "2025-06-01 10:00:00,000 [INFO] in app: started\n"
        "2025-06-01 10:00:01,000 [WARNING] in app: slow\n"
        "not a log line\n",
        encoding="utf-8",
    )
    with gzip.open(tmp_path / "error.log.2025-06-01.gz", "wt", encoding="utf-8") as f:
        f.write("2025-06-01 11:00:00,000 [ERROR] in orderService: boom\n")
    (tmp_path / "other.txt").write_text("2025-06-01 [ERROR] ignored\n", encoding="utf-8")

    summary = summarize_log_dir(str(tmp_path))

    assert summary["2025-06-01"] == {"INFO": 1, "WARNING": 1, "ERROR": 1}
