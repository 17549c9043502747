"""
M-Pesa endpoints: STK push (book), payment callback (grants eBook access), delivery fee.
Each endpoint is one try block: any failure becomes a JSON {error, details} response.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from app.api.dependencies import get_payment_service
from app.core.errors import ApiError, InputValidationError
from app.schemas.payments import CallbackOut, DeliveryIn, StkPushIn
from app.services.payments.service import PaymentService
from app.utils.metrics import payment_callbacks_total

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mpesa", tags=["mpesa"])


@router.post("/stkpush")
def stk_push(
    body: StkPushIn = Body(...),
    service: PaymentService = Depends(get_payment_service),
) -> dict:
    try:
        return service.initiate_purchase(body.phone, body.amount, body.email)
    except Exception as e:
        logger.exception("stk_push_failed", extra={"phone": body.phone, "error": str(e)})
        raise ApiError("STK push failed", details=str(e)) from e


@router.post("/callback", response_model=CallbackOut, response_model_by_alias=True)
def payment_callback(
    payload: dict[str, Any] = Body(...),
    service: PaymentService = Depends(get_payment_service),
) -> CallbackOut:
    logger.info("callback_received", extra={"operation": "callback"})
    try:
        return service.handle_callback(payload)
    except InputValidationError:
        raise
    except Exception as e:
        payment_callbacks_total.labels(outcome="error").inc()
        logger.exception("callback_failed", extra={"error": str(e)})
        raise ApiError("Callback failed", details=str(e)) from e


@router.post("/delivery")
def delivery_payment(
    body: DeliveryIn = Body(...),
    service: PaymentService = Depends(get_payment_service),
) -> dict:
    try:
        return service.initiate_delivery(body.phone, body.transaction_code, body.address, body.amount)
    except InputValidationError:
        raise
    except Exception as e:
        logger.exception("delivery_stk_push_failed", extra={"phone": body.phone, "error": str(e)})
        raise ApiError("Delivery STK push failed", details=str(e)) from e
