# minimarket/cart/routes.py
from __future__ import annotations
from flask import g, jsonify, request

from ..errors import ValidationError
from ..extensions import db
from ..identity import identity_required, user_required
from ..services import CartStore, CheckoutService, atomic
from ..utils.api import api_ok
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def _cart_payload(cart):
    return {"cart": cart.as_api() if cart else None}

def _body():
    return request.get_json(silent=True) or {}

def _product_id(data):
    pid = data.get("product_id")
    try:
        return int(pid)
    except (TypeError, ValueError):
        raise ValidationError("product_id is required", field="product_id")

# ---- endpoints -------------------------------------------------------------

@bp.get("")
@identity_required
def get_cart():
    cart = CartStore(db.session).get_cart(g.identity)
    return ok("cart", _cart_payload(cart))

@bp.get("/count")
@identity_required
def cart_count():
    return ok("cart item count", {"count": CartStore(db.session).item_count(g.identity)})

@bp.post("/items")
@identity_required
def add_item():
    """
    Body: { "product_id": int, "quantity": int (default 1) }
    """
    data = _body()
    product_id = _product_id(data)
    with atomic(db.session):
        cart = CartStore(db.session).add_item(g.identity, product_id, data.get("quantity", 1))
        payload = _cart_payload(cart)
    return ok("item added", payload, status=201)

@bp.put("/items/<int:product_id>")
@bp.patch("/items/<int:product_id>")
@identity_required
def update_item(product_id: int):
    """
    Body: { "quantity": int }   quantity <= 0 removes the line
    """
    data = _body()
    if "quantity" not in data:
        raise ValidationError("quantity is required", field="quantity")
    with atomic(db.session):
        cart = CartStore(db.session).upsert_item(g.identity, product_id, data["quantity"])
        payload = _cart_payload(cart)
    return ok("item updated", payload)

@bp.delete("/items/<int:product_id>")
@identity_required
def remove_item(product_id: int):
    with atomic(db.session):
        cart = CartStore(db.session).remove_item(g.identity, product_id)
        payload = _cart_payload(cart)
    return ok("item removed", payload)

@bp.delete("")
@identity_required
def clear_cart():
    with atomic(db.session):
        CartStore(db.session).clear(g.identity)
    return ok("cart cleared", {"cart": None})

@bp.post("/validate")
@identity_required
def validate_cart():
    report = CheckoutService(db.session).validate_cart(g.identity)
    return ok("cart validated", report)

@bp.post("/merge")
@user_required
def merge_guest_cart():
    """
    Body: { "session_id": "<guest session id>" }
    Called right after sign-in to fold the guest cart into the user's.
    """
    session_id = (_body().get("session_id") or "").strip()
    if not session_id:
        raise ValidationError("session_id is required", field="session_id")
    with atomic(db.session):
        result = CartStore(db.session).merge_guest_cart(session_id, g.identity.user_id)
        payload = {**result, **_cart_payload(CartStore(db.session).get_cart(g.identity))}
    return ok("cart merged", payload)
