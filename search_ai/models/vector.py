from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from search_ai.core.database import Base


class ProductVector(Base):
    """
    Relational mirror of what was written to the vector index.

    Only checksums are kept, never the combined text. The image checksum plus
    description pair doubles as the per-tenant image description cache.
    """

    __tablename__ = "search_ai_vector"
    __table_args__ = (
        Index("vector_app_idx", "app_id"),
        Index("vector_text_checksum_idx", "text_checksum"),
        Index("vector_image_url_checksum_idx", "image_url_checksum"),
    )

    app_id = Column(Integer, ForeignKey("search_ai_app.app_id"), primary_key=True)
    product_id = Column(String(255), primary_key=True)
    product_name = Column(String(255), nullable=False)
    text_checksum = Column(String(64), nullable=False, default="")
    image_url_checksum = Column(String(64), nullable=False, default="")
    image_description = Column(Text, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    date_created = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    date_updated = Column(DateTime(timezone=True), onupdate=func.now())
