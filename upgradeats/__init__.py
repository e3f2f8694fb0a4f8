import logging
import os
from datetime import datetime

from flask import Flask, render_template

from .config import load_config
from .dashboard import DashboardRegistry
from .gateway import SqliteGateway, SupabaseGateway
from .money import format_currency


def build_gateway(app):
    config = app.config
    timeout = config["GATEWAY_TIMEOUT"]
    if config["SUPABASE_URL"] and config["SUPABASE_ANON_KEY"]:
        app.logger.info("Using Supabase gateway at %s", config["SUPABASE_URL"])
        return SupabaseGateway(config["SUPABASE_URL"], config["SUPABASE_ANON_KEY"], timeout=timeout)
    os.makedirs(os.path.dirname(os.path.abspath(config["DB_PATH"])), exist_ok=True)
    gateway = SqliteGateway(config["DB_PATH"], timeout=timeout)
    gateway.init_db(config["ADMIN_EMAIL"], config["ADMIN_PASSWORD"])
    app.logger.info("Using local sqlite gateway at %s", config["DB_PATH"])
    return gateway


def format_date(value) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%d/%m/%Y %H:%M")


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.update(load_config(app.instance_path))
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    gateway = app.config.get("GATEWAY") or build_gateway(app)
    app.extensions["upgradeats"] = {
        "gateway": gateway,
        "dashboards": DashboardRegistry(
            max_mounts=app.config["DASHBOARD_MAX_MOUNTS"],
            idle_seconds=app.config["DASHBOARD_IDLE_SECONDS"],
        ),
    }

    app.jinja_env.filters["rupiah"] = format_currency
    app.jinja_env.filters["date"] = format_date

    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "style-src 'self' 'unsafe-inline'; "
            "script-src 'self' 'unsafe-inline';"
        )
        return response

    @app.errorhandler(404)
    def not_found(error):
        return render_template("404.html"), 404

    @app.errorhandler(500)
    def server_error(error):
        return render_template("500.html"), 500

    from . import admin, site

    app.register_blueprint(site.bp)
    app.register_blueprint(admin.bp)
    return app
