"""Café ordering backend Flask application: payments, reconciliation, kitchen."""

from __future__ import annotations

import time
from typing import Optional

import click
from flask import Flask, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .common.db.session import build_engine, init_schema, make_session_factory
from .common.services.kitchen_service import KitchenService
from .common.services.logging import log_event
from .common.services.order_service import OrderService
from .common.services.transition_service import PaymentTransitionService
from .config import CafeOrdersConfig
from .routes import admin, api, webhooks
from .services import (
    ManualOverrideTool,
    OrderNotifier,
    PayFastCheckout,
    ReconciliationSweeper,
    WebhookHandler,
    YocoCheckout,
    resolve_policy,
)


def build_components(config: CafeOrdersConfig, session_factory, notifier: Optional[OrderNotifier] = None) -> dict:
    notifier = notifier or OrderNotifier(config.notification_url, timeout=config.notification_timeout)
    transitions = PaymentTransitionService(session_factory)
    return {
        "session_factory": session_factory,
        "order_service": OrderService(session_factory, currency=config.currency),
        "kitchen_service": KitchenService(session_factory),
        "transitions": transitions,
        "notifier": notifier,
        "webhook_handler": WebhookHandler(
            transitions,
            notifier,
            payfast_passphrase=config.payfast_passphrase,
            payfast_merchant_id=config.payfast_merchant_id,
            yoco_secret=config.yoco_webhook_secret,
        ),
        "sweeper": ReconciliationSweeper(
            session_factory,
            transitions,
            notifier,
            policy=resolve_policy(config.reconcile_policy, config.reconcile_threshold_minutes),
            batch_size=config.reconcile_batch_size,
        ),
        "override_tool": ManualOverrideTool(transitions, notifier),
        "payfast_checkout": PayFastCheckout(
            config.payfast_merchant_id,
            config.payfast_merchant_key,
            passphrase=config.payfast_passphrase,
            process_url=config.payfast_process_url,
            site_url=config.site_url,
        ),
        "yoco_checkout": YocoCheckout(
            config.yoco_secret_key,
            site_url=config.site_url,
            api_url=config.yoco_api_url,
            timeout=config.notification_timeout,
        ),
    }


def create_app(config: Optional[CafeOrdersConfig] = None, notifier: Optional[OrderNotifier] = None) -> Flask:
    config = config or CafeOrdersConfig.load()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["CAFE_ORDERS_CONFIG"] = config

    engine = build_engine(config.database_url)
    init_schema(engine)
    app.extensions["cafe_orders_components"] = build_components(config, make_session_factory(engine), notifier)

    app.register_blueprint(webhooks.webhooks_bp)
    app.register_blueprint(admin.admin_bp)
    app.register_blueprint(api.api_bp)

    @app.errorhandler(SQLAlchemyError)
    def database_unavailable(exc):
        # surfaced as 5xx so payment providers retry later
        log_event("error", "db.error", error=str(exc))
        return jsonify({"error": "database unavailable"}), 500

    register_commands(app)
    log_event("info", "app.started", policy=config.reconcile_policy, payfast_sandbox=config.payfast_sandbox)
    return app


def register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        cfg = current_app.config["CAFE_ORDERS_CONFIG"]
        init_schema(build_engine(cfg.database_url))
        click.echo("database ready")

    @app.cli.command("reconcile")
    @click.option("--dry-run", is_flag=True, help="Report only, change nothing.")
    @click.option("--threshold", type=int, default=None, help="Minutes an order may await payment.")
    @click.option("--every", type=int, default=0, help="Repeat every N seconds (0 runs once).")
    def reconcile_command(dry_run: bool, threshold: Optional[int], every: int):
        """Run the reconciliation sweep once or on a fixed interval."""
        sweeper = current_app.extensions["cafe_orders_components"]["sweeper"]
        while True:
            report = sweeper.sweep(threshold_minutes=threshold, dry_run=dry_run).to_dict()
            click.echo(
                f"[{report['checked_at']}] policy={report['policy']} checked={report['orders_checked']} "
                f"auto_confirmed={report['auto_confirmed']} manual_review={report['manual_review']}"
            )
            for entry in report["orders"]:
                click.echo(f"  #{entry['order_number']} {entry['order_id']} age={entry['age_minutes']}m -> {entry['action']}")
            if every <= 0:
                break
            time.sleep(every)


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=False)


if __name__ == "__main__":
    main()
