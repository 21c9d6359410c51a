"""Vendor drivers for vitalscore.

Each driver implements the HealthDriver ABC and handles:
- Bearer-token authentication against the vendor API
- Paginated fetching of sleep, activity, readiness, HR and HRV data
- Normalizing vendor-specific JSON into the records in ``vitalscore.base``

Available drivers:
    OuraDriver   — Oura API v2 (Personal Token)
    WhoopDriver  — WHOOP Developer API v1 (OAuth2 access token)
"""

from vitalscore.adapters.oura import OuraDriver
from vitalscore.adapters.whoop import WhoopDriver
from vitalscore.base import HealthDriver

__all__ = [
    "OuraDriver",
    "WhoopDriver",
    "ADAPTER_REGISTRY",
    "get_driver",
]

# Registry: source_id → driver class
ADAPTER_REGISTRY: dict[str, type[HealthDriver]] = {
    "oura": OuraDriver,
    "whoop": WhoopDriver,
}


def get_driver(source_id: str) -> type[HealthDriver]:
    """Return the driver class for a given source slug.

    Args:
        source_id: e.g. 'oura', 'whoop'

    Returns:
        The driver class (not an instance).

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in ADAPTER_REGISTRY:
        raise KeyError(
            f"No driver registered for source '{source_id}'. "
            f"Available: {list(ADAPTER_REGISTRY)}"
        )
    return ADAPTER_REGISTRY[source_id]
