# storefront/main.py
"""
Application wiring. Build one Storefront at start-up and pass it (or its
parts) to the UI layer; nothing in the package keeps module-level state.

    from storefront.main import build_storefront
    shop = build_storefront()
    shop.cart.add_to_cart(line)
    outcome = shop.session.login_with_password(email, password)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from storefront.config import settings
from storefront.core.cart_store import CartStore
from storefront.core.session import SessionReconciler
from storefront.core.token import TokenHolder
from storefront.database import FileStorage, StorageAdapter
from storefront.services.auth import AuthClient
from storefront.services.gateway import NetworkGateway
from storefront.services.orders import OrdersClient

logger = logging.getLogger(__name__)


@dataclass
class Storefront:
    storage: StorageAdapter
    cart: CartStore
    tokens: TokenHolder
    gateway: NetworkGateway
    auth: AuthClient
    orders: OrdersClient
    session: SessionReconciler

    def close(self) -> None:
        self.gateway.close()


def build_storefront(
    storage: Optional[StorageAdapter] = None,
    client: Optional[httpx.Client] = None,
    api_url: Optional[str] = None,
) -> Storefront:
    storage = storage if storage is not None else FileStorage()
    cart = CartStore(storage)
    tokens = TokenHolder(storage)
    gateway = NetworkGateway(tokens, api_url=api_url, client=client)
    auth = AuthClient(gateway)
    orders = OrdersClient(gateway)
    session = SessionReconciler(cart, tokens, auth)
    logger.info(
        "Storefront client ready (api=%s, cart lines=%d, session=%s)",
        gateway.api_url, len(cart), session.state.value,
    )
    if settings.ENV == "development" and isinstance(storage, FileStorage):
        logger.debug("Local storage file: %s", storage.path)
    return Storefront(
        storage=storage,
        cart=cart,
        tokens=tokens,
        gateway=gateway,
        auth=auth,
        orders=orders,
        session=session,
    )
