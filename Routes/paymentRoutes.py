from flask import Blueprint
from Controllers.paymentController import (
    submit_payment, get_payment_status, download_order_receipt,
    get_pending_payments, confirm_payment, reject_payment
)

payment_routes = Blueprint("payment_routes", __name__, url_prefix="/api/payments")

payment_routes.add_url_rule("/submit", view_func=submit_payment, methods=["POST"])
payment_routes.add_url_rule("/status/<order_id>", view_func=get_payment_status, methods=["GET"])
payment_routes.add_url_rule("/receipt/<order_number>", view_func=download_order_receipt, methods=["GET"])

# Admin review
payment_routes.add_url_rule("/admin/pending", view_func=get_pending_payments, methods=["GET"])
payment_routes.add_url_rule("/admin/confirm/<order_id>", view_func=confirm_payment, methods=["POST"])
payment_routes.add_url_rule("/admin/reject/<order_id>", view_func=reject_payment, methods=["POST"])
