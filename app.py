import os

from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from Controllers.errorController import error_bp
from Routes.orderRoutes import order_routes
from Routes.paymentRoutes import payment_routes
from Routes.receiptRoutes import receipt_routes
from Services.registry import init_services, get_services
from Utils.commands import register_receipt_commands
from Utils.config import Config
from Utils.db import init_db
from Utils.logger import setup_logging

# ----------------------------
# Rate Limiter
# ----------------------------
limiter = Limiter(
    get_remote_address,
    default_limits=[
        Config.RATELIMIT_DEFAULT_HOURLY,
        Config.RATELIMIT_DEFAULT_SECONDLY
    ],
)


def create_app(config=None, **service_overrides):
    """Application factory.

    ``config`` overrides values from Utils.config.Config; ``service_overrides``
    (storage, notifier, renderer) replace the default collaborators.
    """
    # ----------------------------
    # Flask app configuration
    # ----------------------------
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    app.secret_key = app.config["SECRET_KEY"]

    # ----------------------------
    # Logging Configuration
    # ----------------------------
    setup_logging(app)

    # ----------------------------
    # Database
    # ----------------------------
    if app.config.get("CONNECT_DB", True):
        init_db(app.config["MONGODB_URI"])

    limiter.init_app(app)

    # ----------------------------
    # Services
    # ----------------------------
    init_services(app, **service_overrides)

    # ----------------------------
    # Register blueprints
    # ----------------------------
    app.register_blueprint(error_bp)
    app.register_blueprint(order_routes)
    app.register_blueprint(payment_routes)
    app.register_blueprint(receipt_routes)

    @app.route("/api/health")
    @limiter.exempt
    def health():
        return jsonify({"success": True, "message": "Fruit Panda API is running", "env": app.config["APP_ENV"]}), 200

    register_receipt_commands(app, get_services)

    return app


# ----------------------------
# Run the app
# ----------------------------
if __name__ == '__main__':
    port = int(os.getenv('PORT', 4000))
    print(f"App running on port {port}...")
    create_app().run(host='0.0.0.0', port=port, debug=False)
