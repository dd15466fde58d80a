from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe for load balancers and orchestrators.

    Listed in APP_RATE_LIMIT_EXEMPT_PATHS by default, so probes neither
    consume client budget nor get throttled. It does not contact the
    counter store.
    """

    return {"status": "ok"}
