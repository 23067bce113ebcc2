"""Fee schedule and delivery tiers.

Cities are compared after normalization (trimmed, lower-cased, accents
stripped), so "Bogotá", " BOGOTA " and "bogota" all land in the local tier.
"""

import unicodedata
from enum import Enum

from payments.config import get_settings
from payments.shared.money import Money

LOCAL_CITIES = frozenset({"bogota", "soacha", "chia", "cajica", "zipaquira"})


class DeliveryTier(Enum):
    LOCAL = "Local"
    NATIONAL = "National"


def normalize_city(city: str | None) -> str:
    if not city:
        return ""
    decomposed = unicodedata.normalize("NFKD", city)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().lower()


def delivery_tier(city: str | None) -> DeliveryTier:
    if normalize_city(city) in LOCAL_CITIES:
        return DeliveryTier.LOCAL
    return DeliveryTier.NATIONAL


def get_base_fee() -> Money:
    settings = get_settings()
    return Money(amount=settings.base_fee, currency=settings.currency)


def get_delivery_fee(city: str | None) -> Money:
    """Return the delivery fee for ``city``: one of exactly two constants."""
    settings = get_settings()
    if delivery_tier(city) is DeliveryTier.LOCAL:
        return Money(amount=settings.delivery_fee_local, currency=settings.currency)
    return Money(amount=settings.delivery_fee_national, currency=settings.currency)


def estimated_delivery_days(city: str | None) -> int:
    settings = get_settings()
    if delivery_tier(city) is DeliveryTier.LOCAL:
        return settings.local_delivery_days
    return settings.national_delivery_days
