"""Admin-only routes: reconciliation and manual payment overrides."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request, session

from ..common.errors import OrderNotFound, OverrideConflict
from ..common.services.logging import log_event


admin_bp = Blueprint("cafe_admin", __name__)

PUBLIC_ENDPOINTS = {"cafe_admin.login", "cafe_admin.logout"}


def _components() -> Dict[str, Any]:
    return current_app.extensions["cafe_orders_components"]


def _config():
    return current_app.config["CAFE_ORDERS_CONFIG"]


def current_admin() -> Optional[str]:
    return session.get("cafe_admin")


@admin_bp.before_request
def guard_private_routes():
    if request.endpoint in PUBLIC_ENDPOINTS:
        return None
    if current_admin():
        return None
    return jsonify({"error": "admin login required"}), 401


@admin_bp.post("/admin/login")
def login():
    payload = request.get_json(silent=True) or request.form
    username = str(payload.get("username", "")).strip()
    password = str(payload.get("password", "")).strip()
    cfg = _config()
    if username == cfg.admin_username and password == cfg.admin_password:
        session["cafe_admin"] = username
        log_event("info", "admin.login", admin=username)
        return jsonify({"status": "ok", "admin": username})
    log_event("warning", "admin.login_failed", admin=username)
    return jsonify({"error": "invalid credentials"}), 401


@admin_bp.post("/admin/logout")
def logout():
    session.pop("cafe_admin", None)
    return jsonify({"status": "ok"})


def _threshold_from(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    value = int(raw)
    if value < 0:
        raise ValueError("thresholdMinutes must be >= 0")
    return value


@admin_bp.post("/reconcile")
def reconcile():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "body must be a JSON object"}), 400
    try:
        threshold = _threshold_from(payload.get("thresholdMinutes"))
    except (TypeError, ValueError):
        return jsonify({"error": "thresholdMinutes must be a non-negative integer"}), 400
    report = _components()["sweeper"].sweep(threshold_minutes=threshold)
    log_event("info", "admin.reconcile", admin=current_admin(), policy=report.policy, checked=len(report.entries))
    return jsonify(report.to_dict())


@admin_bp.get("/reconcile-status")
def reconcile_status():
    try:
        threshold = _threshold_from(request.args.get("thresholdMinutes"))
    except ValueError:
        return jsonify({"error": "thresholdMinutes must be a non-negative integer"}), 400
    report = _components()["sweeper"].sweep(threshold_minutes=threshold, dry_run=True)
    return jsonify(report.to_dict())


@admin_bp.post("/orders/<order_id>/override")
def override_order(order_id: str):
    payload = request.get_json(silent=True) or {}
    action = str(payload.get("action", "")).strip().lower()
    reason = str(payload.get("reason", "")).strip() or None
    if action not in {"complete", "cancel"}:
        return jsonify({"error": "action must be 'complete' or 'cancel'"}), 400
    try:
        order = _components()["override_tool"].override_order(order_id, action, actor=current_admin(), reason=reason)
    except OrderNotFound:
        return jsonify({"error": "order not found"}), 404
    except OverrideConflict as exc:
        return jsonify({"error": str(exc)}), 409
    return jsonify({"status": "ok", "order": order})
