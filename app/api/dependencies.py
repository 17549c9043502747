"""
FastAPI dependency providers. Tests swap these via app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from app.entitlements.gate import ContentAccessGate
from app.entitlements.store import TokenStore, get_token_store
from app.services.mpesa.client import MpesaClient
from app.services.notifications.service import EmailNotifier
from app.services.payments.service import PaymentService
from app.storage.base import ContentStorage
from app.storage.local import LocalContentStorage


@lru_cache
def get_content_storage() -> ContentStorage:
    return LocalContentStorage()


@lru_cache
def get_mpesa_client() -> MpesaClient:
    return MpesaClient()


@lru_cache
def get_notifier() -> EmailNotifier:
    return EmailNotifier()


def get_access_gate(
    store: TokenStore = Depends(get_token_store),
    storage: ContentStorage = Depends(get_content_storage),
) -> ContentAccessGate:
    return ContentAccessGate(store, storage)


def get_payment_service(
    store: TokenStore = Depends(get_token_store),
    mpesa: MpesaClient = Depends(get_mpesa_client),
    notifier: EmailNotifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(store, mpesa, notifier)
