import logging
from io import BytesIO

from flask import request, jsonify, send_file

from Services.registry import get_services
from Utils.appError import AppError
from Utils.auth_decorator import token_required, roles_required
from Utils.pagination import parse_pagination
from Utils.payload import pick

logger = logging.getLogger(__name__)


def send_pdf(source, order_number):
    """Stream a PDF (path or bytes) as ``receipt-<orderNumber>.pdf``."""
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)
    response = send_file(source, mimetype="application/pdf", as_attachment=True,
                         download_name=f"receipt-{order_number}.pdf")
    response.headers["Content-Disposition"] = f'attachment; filename="receipt-{order_number}.pdf"'
    return response


def _receipt_ref(receipt):
    return {
        "id": str(receipt.id),
        "receipt_number": receipt.receipt_number,
        "pdf_url": receipt.pdf_url,
    }


# ============================
# Customer receipts
# ============================
@token_required
def get_user_receipts(user):
    try:
        page, limit = parse_pagination(request.args)
        receipts, pagination = get_services().receipts.list_receipts(user, page, limit)
        return jsonify({
            "success": True,
            "data": [receipt.to_summary() for receipt in receipts],
            "pagination": pagination
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching receipts for {user.email}: {str(e)}", exc_info=True)
        raise AppError("Failed to fetch receipts", 500)


@token_required
def get_receipt(user, receipt_id):
    try:
        receipt = get_services().receipts.get_receipt(receipt_id, user)
        return jsonify({"success": True, "data": receipt.to_json()}), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching receipt {receipt_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to fetch receipt", 500)


@token_required
def generate_receipt(user, order_id):
    try:
        receipt = get_services().receipts.generate_for_order(order_id, user)
        return jsonify({
            "success": True,
            "message": "Receipt generated successfully",
            "data": _receipt_ref(receipt)
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error generating receipt for order {order_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to generate receipt", 500)


@token_required
def download_receipt(user, receipt_id):
    try:
        receipt, pdf_path = get_services().receipts.download_receipt(receipt_id, user)
        logger.info(f"⬇️ Receipt {receipt.receipt_number} downloaded by {user.email}")
        return send_pdf(pdf_path, receipt.order_number)

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error downloading receipt {receipt_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to download receipt", 500)


@token_required
def download_receipt_by_order(user, order_number):
    try:
        receipt, pdf_path = get_services().receipts.download_receipt_by_order_number(order_number, user)
        logger.info(f"⬇️ Receipt {receipt.receipt_number} downloaded by {user.email}")
        return send_pdf(pdf_path, receipt.order_number)

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error downloading receipt for order {order_number}: {str(e)}", exc_info=True)
        raise AppError("Failed to download receipt", 500)


@token_required
def generate_missing_receipts(user):
    try:
        created = get_services().receipts.backfill_missing_receipts(user, scope="mine")
        return jsonify({
            "success": True,
            "message": f"Generated {len(created)} receipts",
            "data": created
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error generating missing receipts: {str(e)}", exc_info=True)
        raise AppError("Failed to generate missing receipts", 500)


# ============================
# Admin
# ============================
@roles_required("admin")
def generate_all_paid_receipts(user):
    try:
        created = get_services().receipts.backfill_missing_receipts(user, scope="all")
        return jsonify({
            "success": True,
            "message": f"Generated {len(created)} receipts",
            "data": created
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error generating receipts for paid orders: {str(e)}", exc_info=True)
        raise AppError("Failed to generate receipts", 500)


@roles_required("admin")
def get_all_receipts(user):
    try:
        page, limit = parse_pagination(request.args, default_limit=20, max_limit=100)
        receipts, pagination = get_services().receipts.list_all_receipts(
            user, page, limit,
            status=request.args.get("status"),
            customer_id=pick(request.args, "customer_id", "customerId"),
        )
        return jsonify({
            "success": True,
            "data": [receipt.to_summary() | {"customer_name": receipt.customer_info.name} for receipt in receipts],
            "pagination": pagination
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching all receipts: {str(e)}", exc_info=True)
        raise AppError("Failed to fetch receipts", 500)


@roles_required("admin")
def regenerate_receipt_pdf(user, receipt_id):
    try:
        receipt = get_services().receipts.regenerate_pdf(receipt_id, user)
        return jsonify({
            "success": True,
            "message": "Receipt PDF regenerated",
            "data": _receipt_ref(receipt)
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error regenerating receipt {receipt_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to regenerate receipt", 500)


@roles_required("admin")
def delete_receipt(user, receipt_id):
    try:
        get_services().receipts.delete_receipt(receipt_id, user)
        return jsonify({"success": True, "message": "Receipt deleted successfully"}), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error deleting receipt {receipt_id}: {str(e)}", exc_info=True)
        raise AppError("Failed to delete receipt", 500)
