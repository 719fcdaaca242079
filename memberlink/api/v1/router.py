"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from memberlink.api.v1 import claims, email_tokens

router = APIRouter()

# =============================================================================
# Staff (bearer JWT)
# =============================================================================

router.include_router(
    email_tokens.members_router, prefix="/members", tags=["email-tokens"]
)
router.include_router(
    email_tokens.email_tokens_router, prefix="/email-tokens", tags=["email-tokens"]
)

# =============================================================================
# Member-facing claim pages (link secret, rate limited)
# =============================================================================

router.include_router(claims.router, prefix="/claims", tags=["claims"])
