from sqlalchemy import Column, String, JSON, TIMESTAMP, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID
from pgvector.sqlalchemy import Vector
from search_ai.core.database import Base

EMBEDDING_DIMENSIONS = 768


class ProductEmbedding(Base):
    """Vector index rows for the pgvector backend."""

    __tablename__ = "product_embeddings"
    __table_args__ = (
        UniqueConstraint("namespace", "product_id", name="product_embeddings_namespace_product_uq"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()"))
    namespace = Column(String(100), nullable=False, index=True)
    product_id = Column(String(255), nullable=False)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS))
    content = Column(String)
    metadata_ = Column("metadata", JSON)
    created_at = Column(TIMESTAMP, server_default=text("CURRENT_TIMESTAMP"))
