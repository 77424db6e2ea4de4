import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from xml.sax.saxutils import escape

from Utils.currency import format_taka

logger = logging.getLogger(__name__)


def send_email(config, to_email, subject, html_body, text_body=None):
    """Send one message over SMTP. Raises on connection or delivery errors."""
    sender = config.get("EMAIL_SENDER", "noreply@fruitpanda.com")

    msg = MIMEMultipart("alternative")
    msg["From"] = sender
    msg["To"] = to_email
    msg["Subject"] = subject
    if text_body:
        msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    smtp_host = config.get("SMTP_HOST", "localhost")
    smtp_port = int(config.get("SMTP_PORT", 1025))

    with smtplib.SMTP(smtp_host, smtp_port, timeout=10) as smtp:
        if config.get("SMTP_USER") and config.get("SMTP_PASS"):
            smtp.starttls()
            smtp.login(config["SMTP_USER"], config["SMTP_PASS"])
        smtp.sendmail(sender, [to_email], msg.as_string())

    logger.info(f"📤 Email '{subject}' sent to {to_email} via {smtp_host}:{smtp_port}")


def render_payment_confirmation(order, payment, receipt_url):
    """Build (subject, html, text) for the payment-confirmed email."""
    subject = f"Payment Confirmed - Order {order.order_number}"
    paid_at = payment.paid_at.strftime("%d %B %Y") if payment.paid_at else "N/A"
    amount = format_taka(order.pricing.total)
    txn = payment.transaction_id or "N/A"

    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #10b981;">Payment Confirmed!</h2>
      <p>Dear {escape(order.customer.name)},</p>
      <p>Your payment for order <strong>{escape(order.order_number)}</strong> has been confirmed.</p>
      <table style="width: 100%; border-collapse: collapse;">
        <tr><td><strong>Amount Paid:</strong></td><td>{amount}</td></tr>
        <tr><td><strong>Payment Method:</strong></td><td>{escape((payment.method or '').upper())}</td></tr>
        <tr><td><strong>Transaction ID:</strong></td><td>{escape(txn)}</td></tr>
        <tr><td><strong>Date:</strong></td><td>{paid_at}</td></tr>
      </table>
      <p><a href="{escape(receipt_url)}" style="color: #10b981;">View your receipt</a></p>
      <p>Thank you for shopping with Fruit Panda!</p>
    </div>
    """

    text = (
        f"Dear {order.customer.name},\n\n"
        f"Your payment for order {order.order_number} has been confirmed.\n"
        f"Amount Paid: {amount}\n"
        f"Payment Method: {(payment.method or '').upper()}\n"
        f"Transaction ID: {txn}\n"
        f"Date: {paid_at}\n\n"
        f"View your receipt: {receipt_url}\n"
    )
    return subject, html, text


class PaymentConfirmationNotifier:
    """Emails the customer once an admin confirms their payment.

    Called after the confirmation is committed; callers treat any exception
    as a logged, non-fatal failure. Returns False when email is disabled.
    """

    def __init__(self, config):
        self.config = config

    def __call__(self, order, payment, receipt_url) -> bool:
        if not self.config.get("SMTP_ENABLED"):
            logger.info(f"✉️ Email disabled, skipping payment confirmation for {order.order_number}")
            return False

        subject, html, text = render_payment_confirmation(order, payment, receipt_url)
        send_email(self.config, order.customer.email, subject, html, text)
        return True
