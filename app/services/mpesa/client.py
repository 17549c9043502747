"""
M-Pesa Daraja client wrapper using httpx sync client.
OAuth client-credentials token + STK push (Lipa na M-Pesa Online).
"""
import base64
import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx
import pybreaker

from app.core.config import settings
from app.core.errors import UpstreamError
from app.services.circuit_breaker import mpesa_breaker
from app.utils.metrics import (
    mpesa_requests_total,
    mpesa_request_duration_seconds,
)


logger = logging.getLogger(__name__)

OAUTH_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"


def stk_timestamp(now: datetime | None = None) -> str:
    """Daraja timestamp: YYYYMMDDHHMMSS."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """base64(shortcode + passkey + timestamp)."""
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


class MpesaClient:
    """
    Sync Daraja client. No state besides the lazily created httpx client;
    a fresh bearer token is fetched for every STK push.
    """

    def __init__(self, http_client: httpx.Client | None = None) -> None:
        self._base_url = settings.mpesa_api_base.rstrip("/")
        self._shortcode = settings.mpesa_shortcode
        self._passkey = settings.mpesa_passkey
        self._client = http_client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.http_client_timeout)
        return self._client

    def _record_request(self, operation: str, status: str, duration: float) -> None:
        mpesa_requests_total.labels(operation=operation, status=status).inc()
        mpesa_request_duration_seconds.labels(operation=operation).observe(duration)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        resp = self.client.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    def _call(self, operation: str, method: str, path: str, **kwargs: Any) -> dict:
        """Make API call to Daraja through the circuit breaker."""
        start = time.time()
        try:
            resp = mpesa_breaker.call(self._send, method, f"{self._base_url}{path}", **kwargs)
            result = resp.json()
            self._record_request(operation, "success", time.time() - start)
            return result
        except pybreaker.CircuitBreakerError as e:
            self._record_request(operation, "circuit_open", time.time() - start)
            logger.warning("mpesa_circuit_open", extra={"operation": operation})
            raise UpstreamError("M-Pesa temporarily unavailable", details=str(e)) from e
        except httpx.HTTPStatusError as e:
            self._record_request(operation, "error", time.time() - start)
            body = _response_body(e.response)
            logger.warning(
                "mpesa_http_error",
                extra={"operation": operation, "status_code": e.response.status_code, "error": body},
            )
            raise UpstreamError(f"M-Pesa {operation} failed with HTTP {e.response.status_code}", details=body) from e
        except (httpx.HTTPError, ValueError) as e:
            self._record_request(operation, "error", time.time() - start)
            logger.warning("mpesa_request_error", extra={"operation": operation, "error": str(e)})
            raise UpstreamError(f"M-Pesa {operation} failed", details=str(e)) from e

    def get_access_token(self) -> str:
        """Fetch a short-lived OAuth bearer token."""
        result = self._call(
            "oauth",
            "GET",
            OAUTH_PATH,
            params={"grant_type": "client_credentials"},
            auth=(settings.mpesa_consumer_key, settings.mpesa_consumer_secret),
        )
        token = result.get("access_token")
        if not token:
            raise UpstreamError("M-Pesa oauth returned no access_token", details=result)
        return token

    def build_stk_payload(
        self,
        phone: str,
        amount: int | float,
        account_reference: str,
        transaction_desc: str,
        timestamp: str | None = None,
    ) -> dict:
        timestamp = timestamp or stk_timestamp()
        return {
            "BusinessShortCode": self._shortcode,
            "Password": stk_password(self._shortcode, self._passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": settings.mpesa_transaction_type,
            "Amount": amount,
            "PartyA": phone,
            "PartyB": self._shortcode,
            "PhoneNumber": phone,
            "CallBackURL": settings.mpesa_callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": transaction_desc,
        }

    def stk_push(
        self,
        phone: str,
        amount: int | float,
        account_reference: str,
        transaction_desc: str,
        access_token: str | None = None,
    ) -> dict:
        """Prompt the payer's phone to authorize a payment. Returns the provider response as-is."""
        token = access_token or self.get_access_token()
        payload = self.build_stk_payload(phone, amount, account_reference, transaction_desc)
        result = self._call(
            "stk_push",
            "POST",
            STK_PUSH_PATH,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        logger.info(
            "stk_push_sent",
            extra={
                "phone": phone,
                "amount": amount,
                "checkout_request_id": result.get("CheckoutRequestID"),
            },
        )
        return result

    def close(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Failed to close client", extra={"error": str(e)})
            finally:
                self._client = None


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
