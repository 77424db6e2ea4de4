import logging
from flask import request, jsonify

from Controllers.receiptController import send_pdf
from Services.registry import get_services
from Utils.appError import AppError, ValidationError
from Utils.auth_decorator import token_required, roles_required
from Utils.pagination import parse_pagination
from Utils.payload import pick, is_object_id

logger = logging.getLogger(__name__)


@token_required
def submit_payment(user):
    """Customer reports a manual (bKash/Nagad/...) payment for review."""
    try:
        data = request.get_json(silent=True) or {}
        order_id = pick(data, "order_id", "orderId")
        if not is_object_id(order_id):
            raise ValidationError("Validation failed", [{"field": "order_id", "message": "Valid order ID is required"}])

        order = get_services().orders.submit_payment(
            order_id, user,
            payment_method=pick(data, "payment_method", "paymentMethod"),
            amount=data.get("amount"),
            transaction_id=pick(data, "transaction_id", "transactionId"),
        )
        return jsonify({
            "success": True,
            "message": "Payment submitted successfully. Awaiting admin confirmation.",
            "data": {
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "payment_status": order.payment.status
            }
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error submitting payment: {str(e)}", exc_info=True)
        raise AppError("Failed to submit payment", 500)


@token_required
def get_payment_status(user, order_id):
    try:
        status = get_services().orders.payment_status(order_id, user)
        return jsonify({"success": True, "data": status}), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error checking payment status for {order_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to check payment status", 500)


@token_required
def download_order_receipt(user, order_number):
    try:
        pdf_bytes = get_services().receipts.render_order_receipt(order_number, user)
        return send_pdf(pdf_bytes, order_number)

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error rendering receipt for {order_number}: {str(e)}", exc_info=True)
        raise AppError("Failed to generate receipt", 500)


# ============================
# Admin review
# ============================
@roles_required("admin")
def get_pending_payments(user):
    try:
        page, limit = parse_pagination(request.args, default_limit=20, max_limit=100)
        orders, pagination = get_services().orders.list_payments(
            user, page, limit, status=request.args.get("status", "pending")
        )
        return jsonify({
            "success": True,
            "data": [order.to_json() for order in orders],
            "pagination": pagination
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching payments: {str(e)}", exc_info=True)
        raise AppError("Failed to fetch payments", 500)


@roles_required("admin")
def confirm_payment(user, order_id):
    try:
        data = request.get_json(silent=True) or {}
        result = get_services().orders.confirm_payment(
            order_id, user,
            transaction_id=pick(data, "transaction_id", "transactionId"),
            notes=data.get("notes"),
        )
        order = result.order
        payload = {
            "order": {
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "payment": order.to_json()["payment"]
            },
            "receipt": result.receipt.to_json() if result.receipt else None,
            "notified": result.notified
        }
        if result.receipt_error:
            # Payment stays confirmed; the receipt is retried via backfill
            payload["receipt_error"] = result.receipt_error
            logger.error(f"Receipt generation failed after confirming {order.order_number}: {result.receipt_error}")
            return jsonify({
                "success": False,
                "message": "Payment confirmed but receipt generation failed",
                "data": payload
            }), 500

        return jsonify({"success": True, "message": "Payment confirmed successfully", "data": payload}), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error confirming payment for {order_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to confirm payment", 500)


@roles_required("admin")
def reject_payment(user, order_id):
    try:
        data = request.get_json(silent=True) or {}
        order = get_services().orders.reject_payment(order_id, user, data.get("reason"))
        return jsonify({
            "success": True,
            "message": "Payment rejected successfully",
            "data": {
                "id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "payment": order.to_json()["payment"]
            }
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error rejecting payment for {order_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to reject payment", 500)
