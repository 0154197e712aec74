"""Creates the Pinecone index with integrated embedding when it does not exist yet."""

import logging
import sys

from pinecone import Pinecone

from search_ai.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("init_pinecone")


def initialize_pinecone_index(pc: Pinecone) -> bool:
    index_name = settings.PINECONE_INDEX_NAME

    if pc.has_index(index_name):
        logger.info(f"Index {index_name} already exists")
        return False

    logger.info(f"Creating new Pinecone index: {index_name}")
    pc.create_index_for_model(
        name=index_name,
        cloud=settings.PINECONE_CLOUD,
        region=settings.PINECONE_REGION,
        embed={
            "model": settings.PINECONE_EMBED_MODEL,
            "field_map": {"text": "text"},
        },
    )
    logger.info(f"Index created with {settings.PINECONE_EMBED_MODEL} integration")
    return True


if __name__ == "__main__":
    if not settings.PINECONE_API_KEY:
        logger.error("❌ PINECONE_API_KEY environment variable is required")
        sys.exit(1)

    try:
        initialize_pinecone_index(Pinecone(api_key=settings.PINECONE_API_KEY))
        logger.info("✅ Pinecone index initialization complete")
    except Exception as e:
        logger.error(f"❌ Pinecone index initialization failed: {e}")
        sys.exit(1)
