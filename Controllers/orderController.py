import logging
from flask import request, jsonify

from Services.registry import get_services
from Utils.appError import AppError
from Utils.auth_decorator import token_required, roles_required
from Utils.pagination import parse_pagination
from Utils.payload import pick

logger = logging.getLogger(__name__)


@token_required
def create_order(user):
    """Place an order for the current user."""
    try:
        data = request.get_json(silent=True) or {}
        payment = data.get("payment") if isinstance(data.get("payment"), dict) else {}
        order = get_services().orders.create_order(
            user,
            items=data.get("items"),
            shipping_address=pick(data, "shipping_address", "shippingAddress"),
            payment_method=pick(data, "payment_method", "paymentMethod", default=payment.get("method")),
            customer_notes=pick(data, "customer_notes", "customerNotes", "notes"),
        )
        return jsonify({
            "success": True,
            "message": "Order created successfully",
            "data": order.to_json()
        }), 201

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}", exc_info=True)
        raise AppError("Error creating order", 500)


@token_required
def get_my_orders(user):
    try:
        page, limit = parse_pagination(request.args)
        orders, pagination = get_services().orders.list_customer_orders(
            user, page, limit, status=request.args.get("status")
        )
        return jsonify({
            "success": True,
            "data": [order.to_json() for order in orders],
            "pagination": pagination
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching orders for {user.email}: {str(e)}", exc_info=True)
        raise AppError("Error fetching orders", 500)


@roles_required("admin")
def get_all_orders(user):
    try:
        page, limit = parse_pagination(request.args, default_limit=20, max_limit=100)
        orders, pagination = get_services().orders.list_orders(
            user, page, limit,
            status=request.args.get("status"),
            search=request.args.get("search"),
        )
        return jsonify({
            "success": True,
            "data": [order.to_json() for order in orders],
            "pagination": pagination
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching all orders: {str(e)}", exc_info=True)
        raise AppError("Error fetching orders", 500)


@token_required
def get_order(user, order_id):
    try:
        order = get_services().orders.get_order(order_id, user)
        return jsonify({"success": True, "data": order.to_json()}), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error fetching order {order_id}: {str(e)}", exc_info=True)
        raise AppError("Error fetching order", 500)


@roles_required("admin", "seller")
def update_order_status(user, order_id):
    try:
        data = request.get_json(silent=True) or {}
        order = get_services().orders.update_status(
            order_id, data.get("status"), user, message=data.get("message")
        )
        return jsonify({
            "success": True,
            "message": "Order status updated successfully",
            "data": order.to_json()
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error updating order status {order_id}: {str(e)}", exc_info=True)
        raise AppError("Error updating order status", 500)


@token_required
def cancel_order(user, order_id):
    try:
        data = request.get_json(silent=True) or {}
        order = get_services().orders.cancel_order(order_id, user, data.get("reason"))
        return jsonify({
            "success": True,
            "message": "Order cancelled successfully",
            "data": order.to_json()
        }), 200

    except AppError as e:
        raise e
    except Exception as e:
        logger.error(f"Error cancelling order {order_id}: {str(e)}", exc_info=True)
        raise AppError("Error cancelling order", 500)
