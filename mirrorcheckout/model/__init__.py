"""Data model for mirror-accelerated checkouts."""

from mirrorcheckout.model.plan import CheckoutPlan
from mirrorcheckout.model.request import (
    # Enums
    SubmoduleMode,
    DissociateMode,
    # Core models
    CheckoutRequest,
    # Utility functions
    is_full_sha,
    parse_bool,
)

__all__ = [
    "CheckoutPlan",
    "CheckoutRequest",
    "DissociateMode",
    "SubmoduleMode",
    "is_full_sha",
    "parse_bool",
]
