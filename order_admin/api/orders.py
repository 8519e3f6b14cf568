from fastapi import APIRouter, Depends, Request, status

from order_admin.api.schemas import ApiResponse, CheckoutRequest, ok
from order_admin.services.checkout import CheckoutService

router = APIRouter()


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


@router.post("", status_code=status.HTTP_201_CREATED, responses={
    400: {"model": ApiResponse, "description": "Invalid order data"},
})
async def create_order(body: CheckoutRequest, service: CheckoutService = Depends(get_checkout_service)):
    """Creates a new order in Processing with its payment pending."""
    order = await service.place_order(body.to_draft())
    return ok(f"Order {order.order_number} created", order.to_dict())
