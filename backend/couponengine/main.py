from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from couponengine.core.config import settings
from couponengine.routers import coupons

OPENAPI_TAGS = [
    {"name": "Coupons", "description": "Validate coupon codes and list available coupons."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    debug=settings.DEBUG,
    description="Coupon validation service backing the storefront discount engine.",
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

app.include_router(coupons.router, prefix="/v1/coupons", tags=["Coupons"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
