from fastapi import APIRouter, Depends
from invoicer.api import invoices
from invoicer.api.deps import verify_app_password

api_router = APIRouter()

# Every API route sits behind the shared secret
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["invoices"],
    dependencies=[Depends(verify_app_password)],
)
