"""
FastAPI Dependencies

Provides dependency injection for database sessions, the invoice store and
the shared-secret check.

SECURITY NOTES:
- The x-app-password header value is never logged
- Missing and wrong passwords are indistinguishable to the client
- Comparison is constant time
"""

from typing import Annotated
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
import hmac
import logging

from invoicer.database import get_db
from invoicer.config import settings
from invoicer.exceptions import UnauthorizedError
from invoicer.services.invoice_store import InvoiceStore

logger = logging.getLogger(__name__)

APP_PASSWORD_HEADER = "x-app-password"


def password_matches(supplied: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected password matches nothing."""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


async def verify_app_password(
    x_app_password: Annotated[str | None, Header(alias=APP_PASSWORD_HEADER)] = None,
) -> None:
    """Reject the request before any store access unless the shared secret matches."""
    if not password_matches(x_app_password, settings.APP_PASSWORD):
        logger.warning(
            "Rejected request with bad shared secret",
            extra={"header_present": x_app_password is not None},
        )
        raise UnauthorizedError()


def get_invoice_store(db: Annotated[AsyncSession, Depends(get_db)]) -> InvoiceStore:
    return InvoiceStore(db)


# Type aliases for dependency injection
Store = Annotated[InvoiceStore, Depends(get_invoice_store)]
