from fastapi import APIRouter, Depends, HTTPException, status
import logging

from ..dependencies import get_order_service
from ..errors import LedgerTransactionError
from ..models.api_models import ErrorResponse, InitializeRequest, OrderRequest
from ..models.order_models import OrderQuote, OrderReceipt
from ..models.result_models import ErrorKind
from ..services.order_service import OrderService

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
)

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SERVICE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.QUOTE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_402_PAYMENT_REQUIRED,
}


@router.post(
    "/initialize",
    response_model=OrderQuote,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
)
async def initialize_order(request: InitializeRequest, orders: OrderService = Depends(get_order_service)):
    """Returns the provider's price for consuming a service."""
    quote = await orders.initialize(request.did, request.service_type, request.consumer_address, request.service_index)
    if quote is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Provider returned no quote.")
    return quote


@router.post(
    "",
    response_model=OrderReceipt,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_402_PAYMENT_REQUIRED: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    },
)
async def place_order(request: OrderRequest, orders: OrderService = Depends(get_order_service)):
    """
    Orders a service of an asset, reusing a still valid previous order when there is one.

    - **service_type** / **service_index**: exactly one identifies the service.
    """
    logger.info(f"Received order for {request.did} from consumer {request.consumer_address}")
    try:
        outcome = await orders.order(
            request.did,
            request.consumer_address,
            service_type=request.service_type,
            service_index=request.service_index,
            fee_collector=request.fee_collector,
        )
    except LedgerTransactionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Payment transaction failed: {e}")

    if not outcome.ok:
        raise HTTPException(status_code=_ERROR_STATUS.get(outcome.error, 400), detail=outcome.message)
    return outcome.value
