from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Search AI Import Service"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    DB_HOST: str | None = None
    DB_PORT: str | None = None
    DB_NAME: str | None = None
    DB_USERNAME: str | None = None
    DB_PASSWORD: str | None = None
    DATABASE_URL: str | None = None

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if (
            self.DB_HOST
            and self.DB_PORT
            and self.DB_NAME
            and self.DB_USERNAME
            and self.DB_PASSWORD
        ):
            return f"postgresql+asyncpg://{self.DB_USERNAME}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

        raise ValueError(
            "Database configuration is incomplete. Define DATABASE_URL or (DB_HOST, DB_PORT, DB_NAME, DB_USERNAME, DB_PASSWORD)."
        )

    # Vector index
    VECTOR_BACKEND: str = "pinecone"  # "pinecone" | "pgvector"
    PINECONE_API_KEY: str | None = None
    PINECONE_INDEX_NAME: str = "search-ai"
    PINECONE_CLOUD: str = "aws"
    PINECONE_REGION: str = "us-east-1"
    PINECONE_EMBED_MODEL: str = "llama-text-embed-v2"

    # AI Providers
    GOOGLE_API_KEY: str | None = None
    GROQ_API_KEY: str | None = None
    VISION_MODEL: str = "gemini-2.0-flash"
    FALLBACK_VISION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    AI_MAX_RETRIES: int = 3
    AI_TIMEOUT_SECONDS: float = 60.0

    # Catalog plugins
    CATALOG_TIMEOUT_SECONDS: float = 30.0
    CATALOG_PAGE_PAUSE_SECONDS: float = 0.1

    # Import pipeline
    IMPORT_CHUNK_SIZE: int = 100
    MAX_CONCURRENT_AI_CALLS: int = 10
    AI_GROUP_PAUSE_SECONDS: float = 0.5
    CHUNK_PAUSE_SECONDS: float = 1.0
    VECTOR_UPSERT_BATCH_SIZE: int = 50
    VECTOR_BATCH_PAUSE_SECONDS: float = 0.1

    # Webhook events (consumer is disabled when unset)
    RABBITMQ_URL: str | None = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
