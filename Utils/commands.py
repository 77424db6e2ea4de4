import click
from flask.cli import with_appcontext

from Models.receiptModel import Receipt
from Models.userModel import User, Role
from Utils.appError import AppError


def register_receipt_commands(app, get_services):
    """Adds 'flask receipts:backfill' and 'flask receipts:regenerate-pdfs'."""

    @click.command("receipts:backfill")
    @with_appcontext
    @click.option("--admin-email", default=None, help="Admin account to run the backfill as")
    def backfill_receipts(admin_email):
        query = User.objects(role=Role.ADMIN)
        if admin_email:
            query = query.filter(email=admin_email.strip().lower())
        admin = query.first()
        if not admin:
            raise click.ClickException("No admin account found")

        created = get_services().receipts.backfill_missing_receipts(admin, scope="all")
        for item in created:
            click.echo(f"🧾 {item['receipt_number']}  {item['order_number']}  {item['customer_name']}")
        click.echo(f"Generated {len(created)} receipts")

    @click.command("receipts:regenerate-pdfs")
    @with_appcontext
    def regenerate_pdfs():
        receipts = get_services().receipts
        fixed = failed = 0
        for receipt in Receipt.objects(pdf_path=None):
            try:
                receipts.ensure_pdf(receipt)
                fixed += 1
            except AppError as e:
                failed += 1
                click.echo(f"⚠️ {receipt.receipt_number}: {e}")
        click.echo(f"Regenerated {fixed} PDFs ({failed} failed)")

    app.cli.add_command(backfill_receipts)
    app.cli.add_command(regenerate_pdfs)
