from flask import Blueprint
from Controllers.orderController import (
    create_order, get_my_orders, get_all_orders, get_order,
    update_order_status, cancel_order
)

order_routes = Blueprint("order_routes", __name__, url_prefix="/api/orders")

# Customer
order_routes.add_url_rule("", view_func=create_order, methods=["POST"])
order_routes.add_url_rule("/my-orders", view_func=get_my_orders, methods=["GET"])
order_routes.add_url_rule("/<order_id>", view_func=get_order, methods=["GET"])
order_routes.add_url_rule("/<order_id>/cancel", view_func=cancel_order, methods=["PATCH"])

# Admin / seller
order_routes.add_url_rule("", view_func=get_all_orders, methods=["GET"])
order_routes.add_url_rule("/<order_id>/status", view_func=update_order_status, methods=["PATCH"])
