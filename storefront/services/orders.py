import logging
from typing import Optional

from storefront.api.schemas.checkout import CheckoutForm
from storefront.api.schemas.order import CodOrderRequest, OrderLinePayload, RefundDetailsRequest
from storefront.models.cart import CartSnapshot
from storefront.services.gateway import ErrorKind, GatewayError, NetworkGateway, Result

logger = logging.getLogger(__name__)


class EmptyCartError(ValueError):
    pass


def build_order_payload(snapshot: CartSnapshot, address_id: str) -> CodOrderRequest:
    """
    Order body for a cart snapshot. Only ids, sizes and quantities are sent;
    the backend prices the order itself, `total` is what the shopper saw.
    """
    if not snapshot.items:
        raise EmptyCartError("Your cart is empty")
    return CodOrderRequest(
        address_id=address_id,
        items=[
            OrderLinePayload(product_id=line.product_id, quantity=line.quantity, size_id=line.size_id)
            for line in snapshot.items
        ],
        total=snapshot.total_price,
    )


class OrdersClient:
    def __init__(self, gateway: NetworkGateway):
        self.gateway = gateway

    def user_orders(self) -> Result:
        return self.gateway.get("/order/user")

    def get_order(self, order_id: str) -> Result:
        return self.gateway.get(f"/order/user/{order_id}")

    def cancel_order(self, order_id: str) -> Result:
        return self.gateway.post(f"/order/cancel/{order_id}")

    def return_order(self, order_id: str) -> Result:
        return self.gateway.post(f"/order/return/{order_id}")

    def submit_refund_details(
        self,
        order_id: str,
        full_name: str,
        upi_id: Optional[str] = None,
        account_number: Optional[str] = None,
        ifsc_code: Optional[str] = None,
        bank_name: Optional[str] = None,
    ) -> Result:
        """
        Save refund destination for an order. A second submission for the same
        order comes back as an ErrorKind.CONFLICT error.
        """
        payload = RefundDetailsRequest(
            order_id=order_id,
            full_name=full_name,
            upi_id=upi_id or None,
            account_number=account_number or None,
            ifsc_code=ifsc_code or None,
            bank_name=bank_name or None,
        )
        result = self.gateway.post("/order/refund-details", json=payload.model_dump(by_alias=True))
        if result.error is not None and result.error.kind is ErrorKind.CONFLICT:
            logger.info("Refund details already saved for order %s", order_id)
        return result

    def place_cod_order(self, snapshot: CartSnapshot, address_id: str, form: CheckoutForm) -> Result:
        """
        Cash-on-delivery checkout from a snapshot. The caller clears the cart
        once the result is ok.
        """
        if form.payment_method != "COD":
            return Result.failure(GatewayError(
                ErrorKind.PROTOCOL, f"Unsupported payment method for this flow: {form.payment_method}"
            ))
        payload = build_order_payload(snapshot, address_id)
        return self.gateway.post("/order/cod", json=payload.model_dump(by_alias=True))
