"""Inbound payment-provider callbacks."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from ..services.signatures import PAYFAST, YOCO


webhooks_bp = Blueprint("cafe_webhooks", __name__)


def _components() -> Dict[str, Any]:
    return current_app.extensions["cafe_orders_components"]


def _remote_addr() -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def _dispatch(provider: str):
    # raw bytes first: parsing before verification would break the signature
    raw_body = request.get_data(cache=True, as_text=False)
    result = _components()["webhook_handler"].handle(provider, raw_body, request.headers, _remote_addr())
    return jsonify(result.body), result.status_code


@webhooks_bp.post("/webhook")
def webhook():
    """Single endpoint; the provider is told apart by content type."""
    mimetype = request.mimetype or ""
    if mimetype == "application/x-www-form-urlencoded":
        return _dispatch(PAYFAST)
    if mimetype == "application/json":
        return _dispatch(YOCO)
    return jsonify({"error": f"unsupported content type: {mimetype or 'none'}"}), 400


@webhooks_bp.post("/webhook/payfast")
def payfast_webhook():
    return _dispatch(PAYFAST)


@webhooks_bp.post("/webhook/yoco")
def yoco_webhook():
    return _dispatch(YOCO)
