import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from search_ai.api.deps import get_import_service, verify_api_key
from search_ai.core.exceptions import CatalogFetchError, ConfigurationError
from search_ai.services.import_service import ProductImportService

logger = logging.getLogger(__name__)

router = APIRouter()


class PublishRequest(BaseModel):
    is_published: bool


@router.post("/apps/{app_id}/import")
async def import_products(
    app_id: int = Depends(verify_api_key),
    service: ProductImportService = Depends(get_import_service),
):
    """
    Pulls the tenant's whole catalog, enriches it and replaces the stored
    records chunk by chunk.
    """
    try:
        result = await service.process_and_store_products(app_id)
    except ConfigurationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except CatalogFetchError as e:
        return JSONResponse(status_code=502, content={"error": str(e)})

    return JSONResponse(status_code=result.status, content=result.model_dump(mode="json"))


@router.delete("/apps/{app_id}/products/{product_id}")
async def delete_product(
    product_id: str,
    app_id: int = Depends(verify_api_key),
    service: ProductImportService = Depends(get_import_service),
):
    result = await service.delete_product(app_id, product_id)
    return JSONResponse(status_code=200 if result.success else 500, content=result.model_dump())


@router.put("/apps/{app_id}/products/{product_id}/published")
async def set_published(
    product_id: str,
    body: PublishRequest,
    app_id: int = Depends(verify_api_key),
    service: ProductImportService = Depends(get_import_service),
):
    result = await service.set_published_status_with_fetch(app_id, product_id, body.is_published)
    return JSONResponse(status_code=200 if result.success else 500, content=result.model_dump())
