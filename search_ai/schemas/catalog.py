from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RawProduct(BaseModel):
    """A product as returned by a catalog plugin, before enrichment."""

    model_config = ConfigDict(frozen=True)

    product_id: Optional[Union[int, str]] = None
    name: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    is_published: bool = False

    @property
    def is_valid(self) -> bool:
        return self.product_id not in (None, "") and bool(self.name)

    @property
    def first_image_url(self) -> Optional[str]:
        return self.images[0] if self.images else None


class ProductList(BaseModel):
    products: List[RawProduct] = Field(default_factory=list)


class SearchRecord(BaseModel):
    """The storable search record produced by one enrichment pass."""

    app_id: int
    product_id: str
    product_name: str
    product_description: str = ""
    text: str
    text_checksum: str
    first_image_url: Optional[str] = None
    image_url_checksum: Optional[str] = None
    image_description: Optional[str] = None
    is_published: bool = False

    def to_index_record(self) -> Dict[str, Any]:
        """Field layout expected by the search side of the vector index."""
        return {
            "_id": self.product_id,
            "text": self.text,
            "description": self.image_description or "",
            "firstImageUrl": self.first_image_url or "",
            "productName": self.product_name,
            "productDescription": self.product_description,
            "productId": self.product_id,
            "isPublished": self.is_published,
        }


class EnrichmentOutcome(BaseModel):
    """Per-product result of a pipeline step: either a record or a reason."""

    product_id: Optional[str] = None
    record: Optional[SearchRecord] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None

    @classmethod
    def success(cls, record: SearchRecord) -> "EnrichmentOutcome":
        return cls(product_id=record.product_id, record=record)

    @classmethod
    def failure(cls, product_id: Optional[str], reason: str) -> "EnrichmentOutcome":
        return cls(product_id=product_id, error=reason)


class ImportJobState(str, Enum):
    FETCHING = "fetching"
    CHUNK_PROCESSING = "chunk_processing"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportResult(BaseModel):
    message: str
    imported_count: int
    total_count: int = 0
    status: int
    state: ImportJobState = ImportJobState.COMPLETED


class OperationResult(BaseModel):
    success: bool
    message: str
