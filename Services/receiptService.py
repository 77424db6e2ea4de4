import time
import logging
from datetime import datetime

from mongoengine.errors import NotUniqueError

from Models.counterModel import Counter
from Models.orderModel import Order, PaymentStatus
from Models.receiptModel import Receipt, ReceiptStatus
from Utils.appError import AppError, Forbidden, NotFound, StorageError, ValidationError, InvalidState
from Utils.pagination import paginate
from Utils.payload import is_object_id
from Utils.receiptPdf import generate_receipt_pdf
from Utils.snapshots import OrderSnapshot, PaymentDetails

logger = logging.getLogger(__name__)
payments_logger = logging.getLogger("payments")

BACKFILL_SCOPES = ("mine", "all")


class ReceiptService:
    """Creates, stores and serves payment receipts.

    One receipt per order, guaranteed by the unique index on ``receipts.order``.
    The record is inserted first and the PDF attached in a second write, so a
    storage failure leaves a ``generated`` receipt without ``pdf_path`` that
    ``ensure_pdf`` can complete later.
    """

    def __init__(self, storage, renderer=generate_receipt_pdf):
        self.storage = storage
        self.renderer = renderer

    # =====================================
    #  NUMBERING
    # =====================================
    @staticmethod
    def next_receipt_number(now=None) -> str:
        day = (now or datetime.utcnow()).strftime("%Y%m%d")
        sequence = Counter.next_value(f"receipt-{day}")
        return f"RCP-{day}-{sequence:04d}"

    # =====================================
    #  CREATION
    # =====================================
    def generate_receipt(self, order, payment_details=None):
        """Find-or-create the receipt for a paid order.

        Raises StorageError when the PDF cannot be rendered or stored; the
        receipt record stays in place in that case. Calling again for an
        order whose receipt lacks its PDF retries the PDF.
        """
        existing = Receipt.objects(order=order.id).first()
        if existing:
            return self.ensure_pdf(existing)

        snapshot = OrderSnapshot.from_order(order)
        payment = payment_details or PaymentDetails.for_order(order)
        receipt = Receipt.from_snapshot(snapshot, payment, self.next_receipt_number())

        try:
            receipt.save()
        except NotUniqueError:
            winner = Receipt.objects(order=order.id).first()
            if winner is None:
                raise
            logger.info(f"Receipt for {order.order_number} created concurrently, reusing {winner.receipt_number}")
            return winner

        payments_logger.info(f"🧾 Receipt {receipt.receipt_number} created for order {order.order_number}")
        self._attach_pdf(receipt, snapshot, payment)
        return receipt

    def ensure_pdf(self, receipt, force=False):
        """Render and store the PDF from the receipt's own frozen copy."""
        if not force and receipt.pdf_path and self.storage.exists(receipt.pdf_path):
            return receipt

        snapshot, payment = receipt.to_snapshot()
        old_path = receipt.pdf_path
        self._attach_pdf(receipt, snapshot, payment)
        if old_path and old_path != receipt.pdf_path:
            self.storage.delete(old_path)
        return receipt

    def _attach_pdf(self, receipt, snapshot, payment):
        try:
            pdf_bytes = self.renderer(
                snapshot, payment,
                receipt_number=receipt.receipt_number,
                issued_at=receipt.generated_at,
            )
        except Exception as e:
            logger.error(f"❌ Failed to render receipt {receipt.receipt_number}: {e}", exc_info=True)
            raise StorageError(f"Could not render receipt PDF: {e}")

        filename = f"receipt-{snapshot.order_number}-{int(time.time() * 1000)}.pdf"
        pdf_path = self.storage.save(pdf_bytes, filename)
        pdf_url = f"/api/receipts/download/{receipt.id}"

        Receipt.objects(id=receipt.id).update_one(set__pdf_path=pdf_path, set__pdf_url=pdf_url)
        receipt.pdf_path = pdf_path
        receipt.pdf_url = pdf_url
        return receipt

    def generate_for_order(self, order_id, requester):
        """Self-service generation for an order the requester owns."""
        order = Order.objects(id=order_id).first() if is_object_id(order_id) else None
        if not order:
            raise NotFound("Order not found")
        if not requester.is_admin and not order.is_owned_by(requester):
            raise Forbidden("Access denied")
        if order.payment.status != PaymentStatus.PAID.value:
            raise InvalidState("Receipts are only available for paid orders")
        return self.generate_receipt(order)

    def backfill_missing_receipts(self, requester, scope="mine"):
        """Create receipts for paid orders that have none, and attach the PDF
        to receipts whose earlier render or store failed.

        ``mine`` covers the requester's orders, ``all`` every order (admin
        only). Returns the receipts created or repaired. A storage failure on
        one order is logged and the loop moves on.
        """
        if scope not in BACKFILL_SCOPES:
            raise ValidationError("Validation failed", [{"field": "scope", "message": "Scope must be 'mine' or 'all'"}])
        if scope == "all" and not requester.is_admin:
            raise Forbidden("Admin access required")

        orders = Order.objects(payment__status=PaymentStatus.PAID.value)
        if scope == "mine":
            orders = orders.filter(customer=requester.id)

        created = []
        for order in orders.order_by("created_at"):
            existing = Receipt.objects(order=order.id).first()
            if existing and existing.pdf_path and self.storage.exists(existing.pdf_path):
                continue
            try:
                receipt = self.generate_receipt(order)
            except StorageError as e:
                logger.error(f"❌ Backfill: PDF failed for order {order.order_number}: {e}")
                receipt = None if existing else Receipt.objects(order=order.id).first()
                if receipt is None:
                    continue
            created.append({
                "id": str(receipt.id),
                "receipt_number": receipt.receipt_number,
                "order_number": receipt.order_number,
                "customer_name": receipt.customer_info.name,
                "pdf_url": receipt.pdf_url,
            })

        logger.info(f"Backfill ({scope}) by {requester.email}: {len(created)} receipt(s) generated")
        return created

    # =====================================
    #  READS
    # =====================================
    def list_receipts(self, customer, page=1, limit=10):
        queryset = Receipt.objects(customer=customer.id).order_by("-generated_at")
        return paginate(queryset, page, limit)

    def list_all_receipts(self, admin, page=1, limit=20, status=None, customer_id=None):
        if not admin.is_admin:
            raise Forbidden("Admin access required")

        errors = []
        if status and status not in [s.value for s in ReceiptStatus]:
            errors.append({"field": "status", "message": "Invalid receipt status"})
        if customer_id and not is_object_id(customer_id):
            errors.append({"field": "customer_id", "message": "Invalid customer id"})
        if errors:
            raise ValidationError("Validation failed", errors)

        queryset = Receipt.objects
        if status:
            queryset = queryset.filter(status=status)
        if customer_id:
            queryset = queryset.filter(customer=customer_id)
        return paginate(queryset.order_by("-generated_at"), page, limit)

    @staticmethod
    def find_receipt_for_order(order):
        return Receipt.objects(order=order.id).first()

    def get_receipt(self, receipt_id, requester):
        receipt = Receipt.objects(id=receipt_id).first() if is_object_id(receipt_id) else None
        if not receipt:
            raise NotFound("Receipt not found")
        if not requester.is_admin and not receipt.is_owned_by(requester):
            raise Forbidden("Access denied")
        return receipt

    # =====================================
    #  DOWNLOADS
    # =====================================
    def download_receipt(self, receipt_id, requester):
        """Returns (receipt, pdf_path) and counts the download."""
        receipt = Receipt.objects(id=receipt_id).first() if is_object_id(receipt_id) else None
        return self._download(receipt, requester)

    def download_receipt_by_order_number(self, order_number, requester):
        receipt = Receipt.objects(order_number=order_number).first() if order_number else None
        return self._download(receipt, requester)

    def _download(self, receipt, requester):
        # Non-admins cannot tell a missing receipt from someone else's
        if receipt is None:
            if requester.is_admin:
                raise NotFound("Receipt not found")
            raise Forbidden("Access denied")
        if not requester.is_admin and not receipt.is_owned_by(requester):
            raise Forbidden("Access denied")
        if not receipt.pdf_path or not self.storage.exists(receipt.pdf_path):
            raise NotFound("PDF file not found")

        updated = Receipt.objects(id=receipt.id).modify(
            new=True,
            inc__metadata__download_count=1,
            set__status=ReceiptStatus.DOWNLOADED.value,
        )
        if updated is None:
            raise NotFound("Receipt not found")
        return updated, updated.pdf_path

    def render_order_receipt(self, order_number, requester):
        """Render a receipt PDF straight from the order, without storing it."""
        order = Order.objects(order_number=order_number).first() if order_number else None
        if not order:
            raise NotFound("Order not found")
        if not order.is_owned_by(requester):
            raise Forbidden("You can only download receipts for your own orders")

        receipt = Receipt.objects(order=order.id).first()
        snapshot = OrderSnapshot.from_order(order)
        payment = PaymentDetails.for_order(order)
        try:
            return self.renderer(
                snapshot, payment,
                receipt_number=receipt.receipt_number if receipt else None,
            )
        except Exception as e:
            logger.error(f"❌ Failed to render receipt for {order_number}: {e}", exc_info=True)
            raise AppError("Failed to generate receipt", 500)

    # =====================================
    #  LIFECYCLE
    # =====================================
    def mark_as_sent(self, receipt) -> bool:
        updated = Receipt.objects(
            id=receipt.id, status=ReceiptStatus.GENERATED.value
        ).update_one(set__status=ReceiptStatus.SENT.value)
        return bool(updated)

    def regenerate_pdf(self, receipt_id, admin):
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        receipt = Receipt.objects(id=receipt_id).first() if is_object_id(receipt_id) else None
        if not receipt:
            raise NotFound("Receipt not found")
        return self.ensure_pdf(receipt, force=True)

    def delete_receipt(self, receipt_id, admin):
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        receipt = Receipt.objects(id=receipt_id).first() if is_object_id(receipt_id) else None
        if not receipt:
            raise NotFound("Receipt not found")

        receipt.delete()
        if receipt.pdf_path:
            self.storage.delete(receipt.pdf_path)
        payments_logger.info(f"🗑️ Receipt {receipt.receipt_number} deleted by {admin.email}")
        return receipt
