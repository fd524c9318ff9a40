# backend/pawnledger/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # External providers
    from .services import storage_service, subscription_service
    storage_service.init_app(app)
    subscription_service.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.books import books_bp
    from .routes.categories import categories_bp
    from .routes.items import items_bp
    from .routes.incidents import incidents_bp
    from .routes.people import people_bp
    from .routes.sales import sales_bp
    from .routes.invoices import invoices_bp
    from .routes.images import images_bp
    from .routes.documents import documents_bp
    from .routes.costs import costs_bp
    from .routes.subscription import subscription_bp
    from .routes.notifications import notifications_bp
    from .routes.admin import admin_bp
    from .routes.export import export_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(books_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(incidents_bp)
    app.register_blueprint(people_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(images_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(costs_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(dashboard_bp)

    allowed_origins = {
        origin.strip()
        for origin in (app.config.get("CORS_ORIGINS") or "").split(",")
        if origin.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
