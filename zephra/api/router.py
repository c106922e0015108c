from fastapi import APIRouter

from zephra.api.routes import admin, csrf, stripe, user, webhooks

api_router = APIRouter(prefix="/api")

api_router.include_router(webhooks.router)
api_router.include_router(stripe.router)
api_router.include_router(user.router)
api_router.include_router(admin.router)
api_router.include_router(csrf.router)
