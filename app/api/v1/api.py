from fastapi import APIRouter

from app.api.v1.endpoints import custom_domains, public

api_router = APIRouter()
api_router.include_router(custom_domains.router, prefix="/member/custom-domains", tags=["custom-domains"])
api_router.include_router(public.router, prefix="/custom-domains", tags=["custom-domains-public"])
