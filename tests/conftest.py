# tests/conftest.py
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.testclient import TestClient
from jose import JWTError, jwt

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from storefront.config import settings  # noqa: E402
from storefront.database import FileStorage, MemoryStorage  # noqa: E402
from storefront.main import build_storefront  # noqa: E402
from storefront.models.cart import CartLine  # noqa: E402

API_URL = "http://testserver/api"
JWT_SECRET = "test-secret"
ADMIN_ROLE_ID = "admin-role"
VALID_OTP = "123456"

SHOPPER = {
    "id": "user-1",
    "email": "shopper@example.com",
    "name": "Shopper",
    "password": "secret123",
    "roleId": settings.CUSTOMER_ROLE_ID,
}


def make_token(user_id: str, expires_in: timedelta = timedelta(days=1)) -> str:
    exp = datetime.now(timezone.utc) + expires_in
    return jwt.encode({"sub": user_id, "exp": exp}, JWT_SECRET, algorithm="HS256")


def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: user.get(k) for k in ("id", "email", "name", "roleId")}


def create_backend() -> FastAPI:
    """
    A stand-in for the storefront REST backend, with just the endpoints the
    client core calls. State lives on app.state so every test gets a fresh one.
    """
    app = FastAPI()
    app.state.users = {SHOPPER["email"]: dict(SHOPPER)}
    app.state.refunds = {}
    app.state.orders = []
    app.state.otps = {}

    api = APIRouter(prefix="/api")

    def _current_user(request: Request):
        header = request.headers.get("authorization") or ""
        if not header.lower().startswith("bearer "):
            return None
        try:
            payload = jwt.decode(header.split(" ", 1)[1], JWT_SECRET, algorithms=["HS256"])
        except JWTError:
            return None
        for user in app.state.users.values():
            if user["id"] == payload.get("sub"):
                return user
        return None

    def _unauthorized():
        return JSONResponse({"success": False, "message": "Unauthorized"}, status_code=401)

    def _signed_in(user):
        return {"success": True, "token": make_token(user["id"]), "user": _public_user(user)}

    @api.post("/auth/login")
    async def login(request: Request):
        body = await request.json()
        user = app.state.users.get(body.get("email"))
        if not user or user.get("password") != body.get("password"):
            return JSONResponse({"success": False, "message": "Invalid email or password"}, status_code=401)
        return _signed_in(user)

    @api.post("/auth/register")
    async def register(request: Request):
        body = await request.json()
        if body["email"] in app.state.users:
            return JSONResponse({"success": False, "message": "User already exists"}, status_code=400)
        user = {
            "id": f"user-{uuid.uuid4().hex[:8]}",
            "email": body["email"],
            "name": body["name"],
            "password": body["password"],
            "roleId": settings.CUSTOMER_ROLE_ID,
        }
        app.state.users[user["email"]] = user
        return JSONResponse(_signed_in(user), status_code=201)

    @api.post("/auth/otp/send")
    async def otp_send(request: Request):
        body = await request.json()
        app.state.otps[body["email"]] = VALID_OTP
        return {"success": True, "message": "OTP sent"}

    @api.post("/auth/otp/verify")
    async def otp_verify(request: Request):
        body = await request.json()
        if app.state.otps.get(body["email"]) != body.get("otp"):
            return {"success": False, "message": "Invalid or expired OTP"}
        user = app.state.users.setdefault(body["email"], {
            "id": f"user-{uuid.uuid4().hex[:8]}",
            "email": body["email"],
            "name": None,
            "roleId": settings.CUSTOMER_ROLE_ID,
        })
        return _signed_in(user)

    @api.post("/auth/google")
    async def google(request: Request):
        body = await request.json()
        user = app.state.users.setdefault(body["email"], {
            "id": f"google-{body['googleId']}",
            "email": body["email"],
            "name": body.get("name"),
            "roleId": ADMIN_ROLE_ID if body["email"].endswith("@staff.example.com") else settings.CUSTOMER_ROLE_ID,
        })
        return _signed_in(user)

    @api.get("/auth/me")
    async def me(request: Request):
        user = _current_user(request)
        if not user:
            return _unauthorized()
        return {"success": True, "user": _public_user(user)}

    @api.post("/order/refund-details")
    async def refund_details(request: Request):
        if not _current_user(request):
            return _unauthorized()
        body = await request.json()
        if body["orderId"] in app.state.refunds:
            return JSONResponse({"error": "Refund details already submitted"}, status_code=409)
        app.state.refunds[body["orderId"]] = body
        return JSONResponse({"id": uuid.uuid4().hex, **body}, status_code=201)

    @api.get("/order/user")
    async def user_orders(request: Request):
        user = _current_user(request)
        if not user:
            return _unauthorized()
        return {"orders": [o for o in app.state.orders if o["userId"] == user["id"]]}

    def _own_order(request: Request, order_id: str):
        user = _current_user(request)
        if not user:
            return None, _unauthorized()
        for order in app.state.orders:
            if order["id"] == order_id and order["userId"] == user["id"]:
                return order, None
        return None, JSONResponse({"error": "Order not found"}, status_code=404)

    @api.get("/order/user/{order_id}")
    async def get_order(order_id: str, request: Request):
        order, error = _own_order(request, order_id)
        return error or {"order": order}

    @api.post("/order/cancel/{order_id}")
    async def cancel_order(order_id: str, request: Request):
        order, error = _own_order(request, order_id)
        if error:
            return error
        if order["status"] != "PENDING":
            return JSONResponse({"error": "Order cannot be cancelled"}, status_code=400)
        order["status"] = "CANCELLED"
        return {"success": True, "order": order}

    @api.post("/order/return/{order_id}")
    async def return_order(order_id: str, request: Request):
        order, error = _own_order(request, order_id)
        if error:
            return error
        if order["status"] != "DELIVERED":
            return JSONResponse({"error": "Only delivered orders can be returned"}, status_code=400)
        order["status"] = "RETURN_REQUESTED"
        return {"success": True, "order": order}

    @api.post("/order/cod")
    async def cod_order(request: Request):
        user = _current_user(request)
        if not user:
            return _unauthorized()
        body = await request.json()
        order = {"id": uuid.uuid4().hex, "userId": user["id"], "status": "PENDING", **body}
        app.state.orders.append(order)
        return JSONResponse({"success": True, "order": order}, status_code=201)

    @api.get("/echo-headers")
    async def echo_headers(request: Request):
        return {"headers": dict(request.headers)}

    @api.post("/upload")
    async def upload(request: Request):
        return {"contentType": request.headers.get("content-type")}

    @api.get("/broken")
    async def broken():
        return HTMLResponse("<html><body>502 Bad Gateway</body></html>")

    @api.get("/plain-error")
    async def plain_error():
        return Response("upstream exploded", status_code=500, media_type="text/plain")

    @api.delete("/nothing")
    async def nothing():
        return Response(status_code=204)

    @api.get("/download")
    async def download():
        return Response(b"\x00\x01binary", media_type="application/octet-stream")

    app.include_router(api)

    @app.get("/public/echo-headers")
    async def public_echo_headers(request: Request):
        return {"headers": dict(request.headers)}

    return app


@pytest.fixture
def backend():
    return create_backend()


@pytest.fixture
def client(backend):
    return TestClient(backend)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def file_storage(tmp_path):
    """FileStorage in an isolated temp data directory."""
    return FileStorage(data_dir=tmp_path)


@pytest.fixture
def shop(client, memory_storage):
    """A fully wired storefront talking to the fake backend."""
    sf = build_storefront(storage=memory_storage, client=client, api_url=API_URL)
    try:
        yield sf
    finally:
        sf.close()


@pytest.fixture
def make_line():
    """
    Factory for cart lines.
    Usage: line = make_line("p1", size_id="m", quantity=2, unit_price=10.0)
    """
    def _fn(product_id="p1", size_id=None, quantity=1, unit_price=100.0, **extra):
        return CartLine(
            product_id=product_id,
            size_id=size_id,
            quantity=quantity,
            unit_price=unit_price,
            display_name=extra.pop("display_name", f"Product {product_id}"),
            **extra,
        )
    return _fn
