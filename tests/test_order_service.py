import os
import re

import pytest

from Models.orderModel import Order
from Models.productModel import Product
from Models.receiptModel import Receipt
from Services.orderService import OrderService
from Services.receiptService import ReceiptService
from Utils.appError import ValidationError, Forbidden, NotFound, InvalidState, AmountMismatch

from conftest import RecordingNotifier, BrokenStorage, make_items, make_address


# ============================
# create_order
# ============================
def test_create_order_prices_and_timeline(customer, place_order):
    order = place_order(customer)

    assert order.pricing.subtotal == 800
    assert order.pricing.delivery_fee == 60
    assert order.pricing.total == 860
    assert order.status == "pending"
    assert order.payment.status == "pending"
    assert order.payment.method == "bkash"
    assert [(t.status, t.message) for t in order.timeline] == [("pending", "Order placed successfully")]
    assert order.customer_info.phone == "01712345678"
    assert Order.objects.count() == 1


def test_free_delivery_at_threshold(customer, place_order):
    order = place_order(customer, lines=(("Mango", 500, 2),))
    assert order.pricing.subtotal == 1000
    assert order.pricing.delivery_fee == 0
    assert order.pricing.total == 1000


def test_delivery_fee_is_configurable(db, customer, receipt_service):
    service = OrderService(receipt_service, delivery_fee=80, free_delivery_threshold=2000)
    order = service.create_order(customer, make_items(("Mango", 500, 2)), make_address(), "cod")
    assert order.pricing.delivery_fee == 80
    assert order.pricing.total == 1080


def test_client_subtotal_is_used_when_present(customer, order_service):
    items = make_items(("Mango", 150, 2))
    items[0]["subtotal"] = 250
    order = order_service.create_order(customer, items, make_address(), "nagad")

    assert order.items[0].subtotal == 250
    assert order.pricing.subtotal == 250


def test_create_order_collects_all_field_errors(customer, order_service):
    with pytest.raises(ValidationError) as exc:
        order_service.create_order(customer, [], make_address(phone="123", city=""), "paypal")

    fields = {error["field"] for error in exc.value.errors}
    assert {"items", "shipping_address.phone", "shipping_address.city", "payment.method"} <= fields
    assert Order.objects.count() == 0


def test_create_order_rejects_bad_lines(customer, order_service):
    items = make_items(("Mango", -5, 0))
    items.append({"productInfo": {"name": " "}, "price": 10, "quantity": 1})

    with pytest.raises(ValidationError) as exc:
        order_service.create_order(customer, items, make_address(), "bkash")

    fields = {error["field"] for error in exc.value.errors}
    assert fields == {"items[0].quantity", "items[0].price", "items[1].product_info.name"}


def test_catalog_line_reserves_inventory(customer, order_service, mango, seller):
    items = make_items(("Himsagar Mango", 150, 3))
    items[0]["product"] = str(mango.id)

    order = order_service.create_order(customer, items, make_address(), "bkash")

    assert order.items[0].product.id == mango.id
    assert order.items[0].product_info.seller.id == seller.id
    assert Product.objects.get(id=mango.id).inventory.reserved == 3


# ============================
# Scenario A: submit then confirm
# ============================
def test_submit_and_confirm_issues_receipt(customer, admin, place_order, order_service, notifier):
    order = place_order(customer)

    submitted = order_service.submit_payment(order, customer, "bkash", 860, transaction_id="BK123")
    assert submitted.payment.status == "pending"
    assert submitted.payment.transaction_id == "BK123"
    assert submitted.payment.submitted_at is not None
    assert submitted.timeline[-1].message == "Payment submitted via BKASH. Awaiting admin confirmation."

    result = order_service.confirm_payment(submitted, admin)

    assert result.order.payment.status == "paid"
    assert result.order.payment.paid_at is not None
    assert result.order.status == "confirmed"
    assert result.order.timeline[-1].message == "Payment confirmed by admin via BKASH"
    assert result.receipt_error is None

    assert re.fullmatch(r"RCP-\d{8}-0001", result.receipt.receipt_number)
    receipt = Receipt.objects.get(order=order.id)
    assert receipt.pdf_url == f"/api/receipts/download/{receipt.id}"
    assert os.path.isfile(receipt.pdf_path)
    assert receipt.payment.transaction_id == "BK123"

    assert len(notifier.calls) == 1
    _, payment, url = notifier.calls[0]
    assert url == f"https://fruitpanda.test/receipt/{order.order_number}"
    assert payment.method == "bkash"
    assert result.notified is True
    assert Receipt.objects.get(id=receipt.id).status == "sent"


def test_confirm_with_admin_transaction_and_notes(customer, admin, place_order, order_service):
    order = place_order(customer)
    result = order_service.confirm_payment(order.id, admin, transaction_id="NG-77", notes="checked statement")

    assert result.order.payment.transaction_id == "NG-77"
    assert result.order.payment.admin_notes == "checked statement"


def test_confirm_without_transaction_id_gets_generated_reference(customer, admin, place_order, order_service):
    result = order_service.confirm_payment(place_order(customer), admin)
    assert Receipt.objects.get(id=result.receipt.receipt_id).payment.transaction_id.startswith("FP-")


# ============================
# Scenario B: amount mismatch
# ============================
def test_submit_amount_mismatch_leaves_order_untouched(customer, place_order, order_service):
    order = place_order(customer)

    with pytest.raises(AmountMismatch):
        order_service.submit_payment(order, customer, "bkash", 800)

    reloaded = Order.objects.get(id=order.id)
    assert reloaded.payment.submitted_at is None
    assert len(reloaded.timeline) == 1


def test_submit_tolerates_rounding(customer, place_order, order_service):
    order = place_order(customer)
    updated = order_service.submit_payment(order, customer, "nagad", "860.005")
    assert updated.payment.method == "nagad"


def test_submit_requires_owner(customer, other_customer, place_order, order_service):
    with pytest.raises(Forbidden):
        order_service.submit_payment(place_order(customer), other_customer, "bkash", 860)


def test_submit_validates_method_and_amount(customer, place_order, order_service):
    with pytest.raises(ValidationError) as exc:
        order_service.submit_payment(place_order(customer), customer, "paypal", "lots")
    assert {e["field"] for e in exc.value.errors} == {"payment_method", "amount"}


def test_submit_after_paid_is_rejected(customer, admin, place_order, order_service):
    order = place_order(customer)
    order_service.confirm_payment(order, admin)

    with pytest.raises(InvalidState):
        order_service.submit_payment(order, customer, "bkash", 860)
    assert Order.objects.get(id=order.id).payment.status == "paid"


# ============================
# Confirmation guards
# ============================
def test_confirm_requires_admin(customer, place_order, order_service):
    with pytest.raises(Forbidden):
        order_service.confirm_payment(place_order(customer), customer)


def test_confirm_on_non_pending_payment_changes_nothing(customer, admin, place_order, order_service):
    order = place_order(customer)
    first = order_service.confirm_payment(order, admin).order

    with pytest.raises(InvalidState):
        order_service.confirm_payment(order, admin)

    reloaded = Order.objects.get(id=order.id)
    assert len(reloaded.timeline) == len(first.timeline)
    assert reloaded.payment.paid_at == first.payment.paid_at
    assert Receipt.objects(order=order.id).count() == 1


def test_confirm_unknown_order(admin, order_service):
    with pytest.raises(NotFound):
        order_service.confirm_payment("64b7f0c2a1b2c3d4e5f60718", admin)


def test_notification_failure_does_not_fail_confirmation(db, customer, admin, place_order, receipt_service):
    failing = RecordingNotifier(fail=True)
    service = OrderService(receipt_service, notifier=failing)

    result = service.confirm_payment(place_order(customer), admin)

    assert result.order.payment.status == "paid"
    assert result.notified is False
    assert len(failing.calls) == 1
    assert Receipt.objects.get(id=result.receipt.receipt_id).status == "generated"


def test_storage_failure_keeps_confirmation(db, tmp_path, customer, admin, place_order):
    notifier = RecordingNotifier()
    service = OrderService(ReceiptService(BrokenStorage(str(tmp_path))), notifier=notifier)

    result = service.confirm_payment(place_order(customer), admin)

    assert result.order.payment.status == "paid"
    assert "disk full" in result.receipt_error
    assert result.notified is True
    assert len(notifier.calls) == 1
    assert result.receipt.pdf_url is None
    receipt = Receipt.objects.get(order=result.order.id)
    assert receipt.status == "generated"
    assert receipt.pdf_path is None


# ============================
# Scenario C: rejection
# ============================
def test_reject_payment(customer, admin, place_order, order_service):
    order = place_order(customer)
    rejected = order_service.reject_payment(order, admin, "Transaction not found")

    assert rejected.payment.status == "failed"
    assert rejected.status == "cancelled"
    assert rejected.payment.rejection_reason == "Transaction not found"
    assert rejected.payment.rejected_by.id == admin.id
    assert rejected.timeline[-1].message == "Payment rejected by admin. Reason: Transaction not found"
    assert Receipt.objects.count() == 0


def test_reject_needs_reason_and_pending_payment(customer, admin, place_order, order_service):
    order = place_order(customer)
    with pytest.raises(ValidationError):
        order_service.reject_payment(order, admin, "   ")

    order_service.reject_payment(order, admin, "Wrong amount")
    with pytest.raises(InvalidState):
        order_service.reject_payment(order, admin, "Again")


# ============================
# Status transitions
# ============================
def test_status_walks_forward(customer, admin, place_order, order_service):
    order = place_order(customer)
    for status in ("confirmed", "processing", "shipped", "delivered"):
        order = order_service.update_status(order, status, admin)

    assert order.status == "delivered"
    assert order.timeline[-1].message == "Order status updated to delivered"
    assert [t.status for t in order.timeline] == ["pending", "confirmed", "processing", "shipped", "delivered"]


def test_illegal_transition_raises(customer, admin, place_order, order_service):
    order = place_order(customer)
    with pytest.raises(InvalidState):
        order_service.update_status(order, "delivered", admin)
    assert Order.objects.get(id=order.id).status == "pending"


def test_stale_status_loses_compare_and_swap(customer, admin, place_order, order_service):
    order = place_order(customer)
    order_service.update_status(order.id, "confirmed", admin)

    # ``order`` still believes it is pending
    with pytest.raises(InvalidState):
        order_service.update_status(order, "cancelled", admin)
    assert Order.objects.get(id=order.id).status == "confirmed"


def test_terminal_states(customer, admin, place_order, order_service):
    order = order_service.update_status(place_order(customer), "cancelled", admin, message="Out of stock")
    assert order.cancellation.reason == "Out of stock"

    with pytest.raises(InvalidState):
        order_service.update_status(order, "pending", admin)


def test_status_update_needs_staff_role(customer, place_order, order_service):
    with pytest.raises(Forbidden):
        order_service.update_status(place_order(customer), "confirmed", customer)


def test_seller_can_update_status(customer, seller, place_order, order_service):
    order = order_service.update_status(place_order(customer), "processing", seller, message="Packing")
    assert order.timeline[-1].message == "Packing"


# ============================
# Scenario D: cancellation
# ============================
def test_owner_cancels_and_inventory_is_released(customer, order_service, mango):
    items = make_items(("Himsagar Mango", 150, 4))
    items[0]["product"] = str(mango.id)
    order = order_service.create_order(customer, items, make_address(), "cod")
    assert Product.objects.get(id=mango.id).inventory.reserved == 4

    cancelled = order_service.cancel_order(order, customer, "  Changed my mind  ")

    assert cancelled.status == "cancelled"
    assert cancelled.cancellation.reason == "Changed my mind"
    assert cancelled.cancellation.refund_status == "pending"
    assert cancelled.timeline[-1].message == "Order cancelled: Changed my mind"
    assert Product.objects.get(id=mango.id).inventory.reserved == 0


def test_cancel_shipped_order_fails(customer, admin, place_order, order_service):
    order = place_order(customer)
    for status in ("confirmed", "shipped"):
        order = order_service.update_status(order, status, admin)

    with pytest.raises(InvalidState):
        order_service.cancel_order(order, customer, "Too late now")
    assert Order.objects.get(id=order.id).status == "shipped"


def test_cancel_returned_order_fails(customer, admin, place_order, order_service):
    order = place_order(customer)
    for status in ("confirmed", "shipped", "delivered", "returned"):
        order = order_service.update_status(order, status, admin)

    with pytest.raises(InvalidState):
        order_service.cancel_order(order, admin, "Refund requested")
    assert Order.objects.get(id=order.id).status == "returned"


def test_cancel_guards(customer, other_customer, admin, place_order, order_service):
    order = place_order(customer)
    with pytest.raises(Forbidden):
        order_service.cancel_order(order, other_customer, "Not my order")
    with pytest.raises(ValidationError):
        order_service.cancel_order(order, customer, "no")

    cancelled = order_service.cancel_order(order, admin, "Customer called support")
    assert cancelled.cancellation.cancelled_by.id == admin.id

    with pytest.raises(InvalidState):
        order_service.cancel_order(cancelled, customer, "Cancel twice")


# ============================
# Reads
# ============================
def test_get_order_access(customer, other_customer, seller, admin, place_order, order_service):
    order = place_order(customer)
    assert order_service.get_order(str(order.id), customer).id == order.id
    assert order_service.get_order(str(order.id), seller).id == order.id
    assert order_service.get_order(str(order.id), admin).id == order.id
    with pytest.raises(Forbidden):
        order_service.get_order(str(order.id), other_customer)
    with pytest.raises(NotFound):
        order_service.get_order("not-an-id", admin)


def test_list_customer_orders_paginates(customer, other_customer, place_order, order_service):
    for _ in range(3):
        place_order(customer)
    place_order(other_customer)

    orders, pagination = order_service.list_customer_orders(customer, page=1, limit=2)

    assert len(orders) == 2
    assert pagination == {"current_page": 1, "total_pages": 2, "total": 3, "has_next": True, "has_prev": False}


def test_list_orders_search(customer, other_customer, admin, place_order, order_service):
    place_order(customer)
    target = place_order(other_customer)

    orders, pagination = order_service.list_orders(admin, search="KARIM@example")
    assert [o.id for o in orders] == [target.id]

    orders, _ = order_service.list_orders(admin, search=target.order_number[-8:])
    assert target.id in [o.id for o in orders]

    with pytest.raises(Forbidden):
        order_service.list_orders(customer)


def test_payment_status_and_queue(customer, other_customer, admin, place_order, order_service):
    order = place_order(customer)
    status = order_service.payment_status(str(order.id), customer)
    assert status == {
        "order_number": order.order_number,
        "payment_status": "pending",
        "order_status": "pending",
        "payment_method": "bkash",
        "paid_at": None,
    }
    with pytest.raises(Forbidden):
        order_service.payment_status(str(order.id), other_customer)

    pending, pagination = order_service.list_payments(admin)
    assert [o.id for o in pending] == [order.id]
    order_service.confirm_payment(order, admin)
    pending, pagination = order_service.list_payments(admin)
    assert pagination["total"] == 0
