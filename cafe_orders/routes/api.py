"""Customer checkout, order status and kitchen queue API."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request, session

from ..common.errors import CheckoutError, InvalidStatusChange, OrderNotFound, PaymentProviderError


api_bp = Blueprint("cafe_api", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["cafe_orders_components"]


def _ensure_staff() -> bool:
    return bool(session.get("cafe_admin"))


@api_bp.post("/checkout")
def checkout():
    payload = request.get_json(silent=True) or {}
    items = payload.get("items")
    if not isinstance(items, list) or not all(isinstance(it, dict) for it in items):
        return jsonify({"error": "items must be a list of objects"}), 400
    provider = str(payload.get("provider") or "payfast").strip().lower()
    if provider not in ("payfast", "yoco"):
        return jsonify({"error": f"unknown payment provider: {provider}"}), 400
    if provider == "yoco" and not _components()["yoco_checkout"].is_enabled():
        return jsonify({"error": "yoco checkout is not configured"}), 400
    try:
        order = _components()["order_service"].create_order(
            items=items,
            user_id=payload.get("user_id"),
            customer_email=payload.get("email"),
        )
    except CheckoutError as exc:
        return jsonify({"error": str(exc)}), 400

    result = {"order": order}
    if provider == "yoco":
        try:
            result["payment"] = _components()["yoco_checkout"].create_checkout(
                order,
                email=payload.get("email"),
                customer_name=" ".join(p for p in (payload.get("first_name"), payload.get("last_name")) if p),
            )
        except PaymentProviderError as exc:
            # the order stays awaiting payment; the client may retry the checkout for it
            return jsonify({"error": str(exc), "order": order}), 502
        return jsonify(result), 201

    payfast = _components()["payfast_checkout"]
    if payfast.is_enabled():
        result["payment"] = payfast.build_payment_form(
            order,
            email=payload.get("email"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
            phone=payload.get("phone"),
        )
    return jsonify(result), 201


@api_bp.post("/orders/<order_id>/yoco-checkout")
def yoco_checkout(order_id: str):
    yoco = _components()["yoco_checkout"]
    if not yoco.is_enabled():
        return jsonify({"error": "yoco checkout is not configured"}), 503
    payload = request.get_json(silent=True) or {}
    try:
        order = _components()["order_service"].get_order(order_id)
        payment = yoco.create_checkout(order, amount=payload.get("amount"), email=payload.get("email"))
    except OrderNotFound:
        return jsonify({"error": "order not found"}), 404
    except CheckoutError as exc:
        return jsonify({"error": str(exc)}), 400
    except PaymentProviderError as exc:
        return jsonify({"error": str(exc)}), 502
    return jsonify({"order_id": order_id, "payment": payment})


@api_bp.get("/orders/<order_id>")
def order_status(order_id: str):
    try:
        return jsonify(_components()["order_service"].customer_view(order_id))
    except OrderNotFound:
        return jsonify({"error": "order not found"}), 404


@api_bp.get("/kitchen/orders")
def kitchen_orders():
    if not _ensure_staff():
        return jsonify({"error": "staff login required"}), 401
    return jsonify({"orders": _components()["kitchen_service"].list_active_orders()})


@api_bp.post("/kitchen/orders/<order_id>/status")
def kitchen_advance(order_id: str):
    if not _ensure_staff():
        return jsonify({"error": "staff login required"}), 401
    payload = request.get_json(silent=True) or {}
    new_status = str(payload.get("status", "")).strip().lower()
    try:
        order = _components()["kitchen_service"].advance(order_id, new_status)
    except OrderNotFound:
        return jsonify({"error": "order not found"}), 404
    except InvalidStatusChange as exc:
        return jsonify({"error": str(exc)}), 409
    return jsonify({"status": "ok", "order": order})
