import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mongoengine.errors import NotUniqueError
from mongoengine.queryset.visitor import Q

from Models.orderModel import (
    Order, OrderItem, ProductInfo, CustomerInfo, ShippingAddress, Pricing,
    Payment, TimelineEntry, Notes, Cancellation, OrderStatus, PaymentStatus, PaymentMethod
)
from Models.productModel import Product
from Models.userModel import Role
from Utils.appError import (
    AppError, ValidationError, Forbidden, NotFound, InvalidState, AmountMismatch, StorageError
)
from Utils.pagination import paginate
from Utils.payload import pick, clean_str, is_object_id, to_float, to_int
from Utils.snapshots import OrderSnapshot, PaymentDetails, ReceiptSnapshot

logger = logging.getLogger(__name__)
payments_logger = logging.getLogger("payments")

ORDER_NUMBER_ATTEMPTS = 5
AMOUNT_TOLERANCE = 0.01
CANCEL_BLOCKED = (
    OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value, OrderStatus.RETURNED.value,
)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value, OrderStatus.PROCESSING.value, OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value, OrderStatus.CANCELLED.value},
    OrderStatus.PROCESSING.value: {OrderStatus.SHIPPED.value, OrderStatus.CANCELLED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: {OrderStatus.RETURNED.value},
    OrderStatus.CANCELLED.value: set(),
    OrderStatus.RETURNED.value: set(),
}

PAYMENT_METHODS = [m.value for m in PaymentMethod]
ORDER_STATUSES = [s.value for s in OrderStatus]
PAYMENT_STATUSES = [s.value for s in PaymentStatus]


@dataclass
class ConfirmationResult:
    order: Order
    receipt: Optional[ReceiptSnapshot] = None
    receipt_error: Optional[str] = None
    notified: bool = False


class OrderService:
    """Order placement, payment review and status transitions.

    Every check-then-act step is a single conditional ``modify`` on the
    order, so two admins confirming the same payment cannot both succeed.
    """

    def __init__(self, receipt_service, notifier=None, delivery_fee=60.0,
                 free_delivery_threshold=1000.0, frontend_url="http://localhost:5173"):
        self.receipts = receipt_service
        self.notifier = notifier
        self.delivery_fee = delivery_fee
        self.free_delivery_threshold = free_delivery_threshold
        self.frontend_url = frontend_url.rstrip("/")

    # =====================================
    #  LOOKUPS
    # =====================================
    @staticmethod
    def find_order(order_id) -> Order:
        order = Order.objects(id=order_id).first() if is_object_id(order_id) else None
        if not order:
            raise NotFound("Order not found")
        return order

    def _resolve(self, order_or_id) -> Order:
        return order_or_id if isinstance(order_or_id, Order) else self.find_order(order_or_id)

    def delivery_fee_for(self, subtotal: float) -> float:
        return 0.0 if subtotal >= self.free_delivery_threshold else self.delivery_fee

    # =====================================
    #  CREATE
    # =====================================
    def create_order(self, customer, items, shipping_address, payment_method, customer_notes=None):
        errors = []
        order_items = self._parse_items(items, errors)
        address = self._parse_address(shipping_address, errors)
        method = clean_str(payment_method).lower()
        if method not in PAYMENT_METHODS:
            errors.append({"field": "payment.method", "message": "Invalid payment method"})
        if errors:
            raise ValidationError("Validation failed", errors)

        # Line subtotals come from the client when supplied
        subtotal = sum(item.subtotal for item in order_items)
        delivery_fee = self.delivery_fee_for(subtotal)

        order = Order(
            customer=customer,
            customer_info=CustomerInfo(name=customer.name, email=customer.email, phone=address.phone),
            items=order_items,
            shipping_address=address,
            pricing=Pricing(subtotal=subtotal, delivery_fee=delivery_fee, discount=0, total=subtotal + delivery_fee),
            payment=Payment(method=method, status=PaymentStatus.PENDING.value),
            status=OrderStatus.PENDING.value,
            notes=Notes(customer_notes=clean_str(customer_notes) or None),
        )
        order.add_timeline(OrderStatus.PENDING.value, "Order placed successfully", updated_by=customer)

        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            order.order_number = Order.generate_order_number()
            try:
                order.save()
                break
            except NotUniqueError:
                logger.warning(f"Order number {order.order_number} taken, retrying ({attempt + 1})")
        else:
            raise AppError("Could not allocate an order number", 500)

        self._reserve_inventory(order)
        logger.info(f"🛒 Order {order.order_number} placed by {customer.email} (total {order.pricing.total})")
        return order

    def _parse_items(self, items, errors):
        if not isinstance(items, list) or not items:
            errors.append({"field": "items", "message": "Order must contain at least one item"})
            return []

        parsed = []
        for index, raw in enumerate(items):
            field = f"items[{index}]"
            if not isinstance(raw, dict):
                errors.append({"field": field, "message": "Invalid item"})
                continue

            info = pick(raw, "product_info", "productInfo", default={})
            if not isinstance(info, dict):
                info = {}
            name = clean_str(info.get("name"))
            quantity = to_int(raw.get("quantity"))
            price = to_float(raw.get("price"))

            if not name:
                errors.append({"field": f"{field}.product_info.name", "message": "Product name is required"})
            if quantity is None or quantity < 1:
                errors.append({"field": f"{field}.quantity", "message": "Quantity must be at least 1"})
            if price is None or price < 0:
                errors.append({"field": f"{field}.price", "message": "Price must be a positive number"})
            if not name or quantity is None or quantity < 1 or price is None or price < 0:
                continue

            subtotal = to_float(raw.get("subtotal"))
            if subtotal is None or subtotal < 0:
                subtotal = price * quantity

            product = None
            product_id = pick(raw, "product", "product_id", "productId")
            if is_object_id(product_id):
                product = Product.objects(id=product_id).first()

            parsed.append(OrderItem(
                product=product,
                product_info=ProductInfo(
                    name=name,
                    name_bn=pick(info, "name_bn", "nameBn"),
                    image=info.get("image"),
                    seller=product.seller if product else None,
                ),
                quantity=quantity,
                price=price,
                weight=pick(raw, "weight", default=info.get("weight")),
                subtotal=subtotal,
            ))
        return parsed

    @staticmethod
    def _parse_address(data, errors):
        data = data if isinstance(data, dict) else {}
        full_name = clean_str(pick(data, "full_name", "fullName"))
        phone = clean_str(data.get("phone"))
        address = clean_str(data.get("address"))
        city = clean_str(data.get("city"))
        area = clean_str(data.get("area"))

        if len(full_name) < 2:
            errors.append({"field": "shipping_address.full_name", "message": "Full name is required"})
        if len(phone) < 10:
            errors.append({"field": "shipping_address.phone", "message": "Valid phone number is required"})
        if len(address) < 5:
            errors.append({"field": "shipping_address.address", "message": "Address is required"})
        if not city:
            errors.append({"field": "shipping_address.city", "message": "City is required"})
        if not area:
            errors.append({"field": "shipping_address.area", "message": "Area is required"})

        return ShippingAddress(
            full_name=full_name, phone=phone, address=address, city=city, area=area,
            instructions=clean_str(data.get("instructions")) or None,
        )

    # =====================================
    #  INVENTORY
    # =====================================
    @staticmethod
    def _catalog_lines(order):
        for item in order.items:
            product_id = getattr(item.product, "id", item.product)
            if product_id:
                yield item, product_id

    def _reserve_inventory(self, order):
        for item, product_id in self._catalog_lines(order):
            product = Product.objects(id=product_id).first()
            if product:
                product.reserve(item.quantity)

    def _release_inventory(self, order):
        for item, product_id in self._catalog_lines(order):
            try:
                product = Product.objects(id=product_id).first()
                if product is None:
                    continue
                if not product.release(item.quantity):
                    logger.warning(f"⚠️ Reserved stock for {product.name} already below {item.quantity}")
            except Exception as e:
                logger.warning(f"⚠️ Could not release inventory for product {product_id}: {e}")

    # =====================================
    #  PAYMENTS
    # =====================================
    def submit_payment(self, order, requester, payment_method, amount, transaction_id=None):
        order = self._resolve(order)
        if not order.is_owned_by(requester):
            raise Forbidden("You can only submit payments for your own orders")

        errors = []
        method = clean_str(payment_method).lower()
        if method not in PAYMENT_METHODS:
            errors.append({"field": "payment_method", "message": "Valid payment method is required"})
        amount = to_float(amount)
        if amount is None or amount < 0:
            errors.append({"field": "amount", "message": "Valid amount is required"})
        if errors:
            raise ValidationError("Validation failed", errors)

        if abs(amount - order.pricing.total) > AMOUNT_TOLERANCE:
            raise AmountMismatch()

        now = datetime.utcnow()
        updated = Order.objects(
            id=order.id,
            payment__status__nin=[PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value],
        ).modify(
            new=True,
            set__payment__status=PaymentStatus.PENDING.value,
            set__payment__method=method,
            set__payment__transaction_id=clean_str(transaction_id) or None,
            set__payment__submitted_at=now,
            set__status=OrderStatus.PENDING.value,
            set__updated_at=now,
            push__timeline=TimelineEntry(
                status=OrderStatus.PENDING.value,
                message=f"Payment submitted via {method.upper()}. Awaiting admin confirmation.",
                timestamp=now,
                updated_by=requester,
            ),
        )
        if updated is None:
            raise InvalidState("Payment has already been completed for this order")

        payments_logger.info(
            f"💳 Payment submitted for {updated.order_number}: {method} {amount:.2f} txn={transaction_id or '-'}"
        )
        return updated

    def confirm_payment(self, order, admin, transaction_id=None, notes=None) -> ConfirmationResult:
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        order = self._resolve(order)

        now = datetime.utcnow()
        updates = {
            "set__payment__status": PaymentStatus.PAID.value,
            "set__payment__paid_at": now,
            "set__status": OrderStatus.CONFIRMED.value,
            "set__updated_at": now,
            "push__timeline": TimelineEntry(
                status=OrderStatus.CONFIRMED.value,
                message=f"Payment confirmed by admin via {order.payment.method.upper()}",
                timestamp=now,
                updated_by=admin,
            ),
        }
        if clean_str(transaction_id):
            updates["set__payment__transaction_id"] = clean_str(transaction_id)
        if clean_str(notes):
            updates["set__payment__admin_notes"] = clean_str(notes)

        updated = Order.objects(id=order.id, payment__status=PaymentStatus.PENDING.value).modify(new=True, **updates)
        if updated is None:
            raise InvalidState("Order payment is not pending confirmation")

        payments_logger.info(f"✅ Payment confirmed for {updated.order_number} by {admin.email}")

        result = ConfirmationResult(order=updated)
        payment = PaymentDetails.for_order(updated)
        receipt = None
        try:
            receipt = self.receipts.generate_receipt(updated, payment)
        except StorageError as e:
            logger.error(f"❌ Payment confirmed but receipt generation failed for {updated.order_number}: {e}")
            result.receipt_error = str(e)
            receipt = self.receipts.find_receipt_for_order(updated)
        if receipt is not None:
            result.receipt = ReceiptSnapshot.from_receipt(receipt)

        result.notified = self._notify_confirmation(updated, payment, receipt)
        return result

    def _notify_confirmation(self, order, payment, receipt) -> bool:
        if self.notifier is None:
            return False
        receipt_url = f"{self.frontend_url}/receipt/{order.order_number}"
        try:
            sent = self.notifier(OrderSnapshot.from_order(order), payment, receipt_url)
        except Exception as e:
            logger.warning(f"⚠️ Failed to send payment confirmation email for {order.order_number}: {e}")
            return False
        # A receipt without a stored PDF stays "generated" until it is repaired
        if sent and receipt is not None and receipt.pdf_path:
            self.receipts.mark_as_sent(receipt)
        return bool(sent)

    def reject_payment(self, order, admin, reason):
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        reason = clean_str(reason)
        if not reason:
            raise ValidationError("Validation failed", [{"field": "reason", "message": "Rejection reason is required"}])
        order = self._resolve(order)

        now = datetime.utcnow()
        updated = Order.objects(id=order.id, payment__status=PaymentStatus.PENDING.value).modify(
            new=True,
            set__payment__status=PaymentStatus.FAILED.value,
            set__payment__rejected_at=now,
            set__payment__rejected_by=admin,
            set__payment__rejection_reason=reason,
            set__status=OrderStatus.CANCELLED.value,
            set__updated_at=now,
            push__timeline=TimelineEntry(
                status=OrderStatus.CANCELLED.value,
                message=f"Payment rejected by admin. Reason: {reason}",
                timestamp=now,
                updated_by=admin,
            ),
        )
        if updated is None:
            raise InvalidState("Order payment is not pending confirmation")

        payments_logger.info(f"❌ Payment rejected for {updated.order_number} by {admin.email}: {reason}")
        return updated

    def payment_status(self, order_id, requester) -> dict:
        order = self.find_order(order_id)
        if not requester.is_admin and not order.is_owned_by(requester):
            raise Forbidden("You can only check payment status for your own orders")
        return {
            "order_number": order.order_number,
            "payment_status": order.payment.status,
            "order_status": order.status,
            "payment_method": order.payment.method,
            "paid_at": order.payment.paid_at.isoformat() if order.payment.paid_at else None,
        }

    def list_payments(self, admin, page=1, limit=20, status=PaymentStatus.PENDING.value):
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        if status and status not in PAYMENT_STATUSES:
            raise ValidationError("Validation failed", [{"field": "status", "message": "Invalid payment status"}])

        queryset = Order.objects
        if status:
            queryset = queryset.filter(payment__status=status)
        return paginate(queryset.order_by("-updated_at"), page, limit)

    # =====================================
    #  STATUS
    # =====================================
    def update_status(self, order, new_status, updated_by, message=None):
        if updated_by.role_value not in (Role.ADMIN.value, Role.SELLER.value):
            raise Forbidden("Access denied. Requires role(s): admin, seller")
        new_status = clean_str(new_status).lower()
        if new_status not in ORDER_STATUSES:
            raise ValidationError("Validation failed", [{"field": "status", "message": "Invalid status"}])
        order = self._resolve(order)

        current = order.status
        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidState(f"Cannot change order status from {current} to {new_status}")

        now = datetime.utcnow()
        message = clean_str(message) or f"Order status updated to {new_status}"
        updates = {
            "set__status": new_status,
            "set__updated_at": now,
            "push__timeline": TimelineEntry(status=new_status, message=message, timestamp=now, updated_by=updated_by),
        }
        if new_status == OrderStatus.CANCELLED.value:
            updates["set__cancellation"] = Cancellation(reason=message, cancelled_by=updated_by, cancelled_at=now)

        updated = Order.objects(id=order.id, status=current).modify(new=True, **updates)
        if updated is None:
            raise InvalidState("Order status changed concurrently, please retry")

        if new_status == OrderStatus.CANCELLED.value:
            self._release_inventory(updated)
        logger.info(f"📦 Order {updated.order_number}: {current} -> {new_status} by {updated_by.email}")
        return updated

    def cancel_order(self, order, requester, reason):
        order = self._resolve(order)
        if not requester.is_admin and not order.is_owned_by(requester):
            raise Forbidden("Access denied")
        reason = clean_str(reason)
        if len(reason) < 5:
            raise ValidationError("Validation failed", [{"field": "reason", "message": "Cancellation reason is required"}])
        if order.status in CANCEL_BLOCKED:
            raise InvalidState("Order cannot be cancelled at this stage")

        now = datetime.utcnow()
        updated = Order.objects(id=order.id, status__nin=list(CANCEL_BLOCKED)).modify(
            new=True,
            set__status=OrderStatus.CANCELLED.value,
            set__cancellation=Cancellation(reason=reason, cancelled_by=requester, cancelled_at=now),
            set__updated_at=now,
            push__timeline=TimelineEntry(
                status=OrderStatus.CANCELLED.value,
                message=f"Order cancelled: {reason}",
                timestamp=now,
                updated_by=requester,
            ),
        )
        if updated is None:
            raise InvalidState("Order cannot be cancelled at this stage")

        self._release_inventory(updated)
        logger.info(f"🚫 Order {updated.order_number} cancelled by {requester.email}")
        return updated

    # =====================================
    #  READS
    # =====================================
    def get_order(self, order_id, requester):
        order = self.find_order(order_id)
        if requester.role_value in (Role.ADMIN.value, Role.SELLER.value) or order.is_owned_by(requester):
            return order
        raise Forbidden("Access denied")

    def list_customer_orders(self, customer, page=1, limit=10, status=None):
        if status and status not in ORDER_STATUSES:
            raise ValidationError("Validation failed", [{"field": "status", "message": "Invalid status"}])
        queryset = Order.objects(customer=customer.id)
        if status:
            queryset = queryset.filter(status=status)
        return paginate(queryset.order_by("-created_at"), page, limit)

    def list_orders(self, admin, page=1, limit=20, status=None, search=None):
        if not admin.is_admin:
            raise Forbidden("Admin access required")
        queryset = Order.objects
        if status:
            queryset = queryset.filter(status=status)
        search = clean_str(search)
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search)
                | Q(customer_info__name__icontains=search)
                | Q(customer_info__email__icontains=search)
            )
        return paginate(queryset.order_by("-created_at"), page, limit)
