from flask import Blueprint
from Controllers.receiptController import (
    get_user_receipts, get_receipt, generate_receipt, download_receipt,
    download_receipt_by_order, generate_missing_receipts, generate_all_paid_receipts,
    get_all_receipts, regenerate_receipt_pdf, delete_receipt
)

receipt_routes = Blueprint("receipt_routes", __name__, url_prefix="/api/receipts")

# Customer
receipt_routes.add_url_rule("/user", view_func=get_user_receipts, methods=["GET"])
receipt_routes.add_url_rule("/generate-missing", view_func=generate_missing_receipts, methods=["POST"])
receipt_routes.add_url_rule("/generate/<order_id>", view_func=generate_receipt, methods=["POST"])
receipt_routes.add_url_rule("/download/order/<order_number>", view_func=download_receipt_by_order, methods=["GET"])
receipt_routes.add_url_rule("/download/<receipt_id>", view_func=download_receipt, methods=["GET"])

# Admin
receipt_routes.add_url_rule("/generate-all-paid", view_func=generate_all_paid_receipts, methods=["POST"])
receipt_routes.add_url_rule("/admin/all", view_func=get_all_receipts, methods=["GET"])
receipt_routes.add_url_rule("/admin/<receipt_id>/regenerate", view_func=regenerate_receipt_pdf, methods=["POST"])
receipt_routes.add_url_rule("/admin/<receipt_id>", view_func=delete_receipt, methods=["DELETE"])

receipt_routes.add_url_rule("/<receipt_id>", view_func=get_receipt, methods=["GET"])
