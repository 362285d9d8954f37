# minimarket/order/routes.py
from flask import g, jsonify, request

from ..errors import ValidationError
from ..extensions import db
from ..identity import identity_required, user_required
from ..services import CheckoutService, OrderStore
from ..services.order_store import DEFAULT_HISTORY_LIMIT
from ..utils.api import api_ok, api_error
from . import bp

def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r

@bp.post("")
@identity_required
def create_order():
    """
    Body:
      {
        "customer": {"name", "email", "phone"?},
        "shipping_address": {"street", "city", "region", "postal_code", "country", "additional_info"?},
        "payment_method": "webpay"
      }
    """
    payload = request.get_json(silent=True) or {}
    receipt = CheckoutService(db.session).create_order(
        g.identity,
        payload.get("customer"),
        payload.get("shipping_address"),
        payload.get("payment_method"),
    )
    resp = ok("order created", receipt.as_api(), status=201)
    resp.headers["X-Order-Id"] = str(receipt.order_id)
    return resp

@bp.get("")
@user_required
def list_orders():
    """
    Query params:
      - limit (default 20, max 100)
    """
    try:
        limit = int(request.args.get("limit", DEFAULT_HISTORY_LIMIT))
    except ValueError:
        raise ValidationError("limit must be an integer", field="limit")
    orders = OrderStore(db.session).list_orders_by_user(g.identity.user_id, limit)
    return ok("orders", {"items": [o.as_api() for o in orders]})

@bp.get("/<int:order_id>")
@user_required
def get_order(order_id: int):
    o = OrderStore(db.session).get_order(order_id)
    # other users' orders look the same as missing ones
    if not o or o.user_id != g.identity.user_id:
        return err("order not found", 404)
    return ok("order", {"order": o.as_api()})
