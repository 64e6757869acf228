"""HTTP endpoints of the wallet/Twitter verification server.

Handlers delegate to VerificationService; its VerificationError is turned
into an ``{"error": ...}`` body by the application's exception handler.
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse

from etf_autoagent.config import Settings
from etf_autoagent.models.verification import TweetVerificationRequest, WalletHandleRequest
from etf_autoagent.verification.service import (
    VerificationService,
    health_report,
    probe_services,
)


def create_verification_router(settings: Settings, service: VerificationService) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["verification"])

    @router.get("/health")
    def health():
        return health_report(settings)

    @router.get("/health/services")
    def services_health():
        return probe_services(settings)

    @router.get("/verification/status/{wallet_address}")
    def verification_status(wallet_address: str):
        return service.get_status(wallet_address)

    @router.post("/verify-twitter")
    def verify_tweet(body: TweetVerificationRequest):
        return service.verify_tweet(body.wallet_address, body.twitter_handle, body.tweet_id)

    @router.post("/verify-twitter/oauth/initiate")
    def oauth_initiate(body: WalletHandleRequest):
        return service.initiate_oauth(body.wallet_address, body.twitter_handle)

    @router.get("/verify-twitter/oauth/callback")
    def oauth_callback(
        code: Optional[str] = Query(default=None),
        state: Optional[str] = Query(default=None),
        error: Optional[str] = Query(default=None),
    ):
        return RedirectResponse(url=service.complete_oauth(code, state, error))

    @router.post("/verify-twitter/bio/initiate")
    def bio_initiate(body: WalletHandleRequest):
        return service.initiate_bio(body.wallet_address, body.twitter_handle)

    @router.post("/verify-twitter/bio/complete")
    def bio_complete(body: WalletHandleRequest):
        return service.complete_bio(body.wallet_address, body.twitter_handle)

    return router
