import secrets
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from search_ai.core.database import SessionLocal
from search_ai.repositories.app import AppRepository
from search_ai.services.import_service import ProductImportService

security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Opens a database session per request and closes it automatically
    when the request ends.
    """
    async with SessionLocal() as db:
        yield db


def parse_app_id(app_id: str) -> int:
    try:
        parsed = int(app_id)
    except ValueError:
        parsed = 0
    if parsed <= 0:
        raise HTTPException(status_code=400, detail="Invalid app ID")
    return parsed


async def verify_api_key(
    app_id: int = Depends(parse_app_id),
    token_auth: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Shared-secret bearer token, compared against the app's active key."""
    if token_auth is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    expected = await AppRepository(db).get_active_api_key(app_id)
    if not expected or not secrets.compare_digest(expected, token_auth.credentials):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return app_id


def get_import_service(request: Request, db: AsyncSession = Depends(get_db)) -> ProductImportService:
    state = request.app.state
    return ProductImportService(
        db,
        vector_index=state.vector_index,
        provider=state.description_provider,
        http=state.http_client,
    )
