from fastapi import APIRouter
from jobboard.api import admin, ads, auth, cron, payments

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(ads.router, prefix="/ads", tags=["ads"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
