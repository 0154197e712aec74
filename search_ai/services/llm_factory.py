from langchain_groq import ChatGroq
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings
from search_ai.core.config import settings


def get_vision_llm():
    """Primary image description model (Google Gemini)"""
    return ChatGoogleGenerativeAI(
        model=settings.VISION_MODEL,
        temperature=0.7,
        max_output_tokens=500,
        timeout=settings.AI_TIMEOUT_SECONDS,
        max_retries=0,
        google_api_key=settings.GOOGLE_API_KEY,
    )


def get_fallback_vision_llm():
    """Fallback image description model (Groq - Llama 4 Scout)"""
    return ChatGroq(
        temperature=0.7,
        model=settings.FALLBACK_VISION_MODEL,
        max_tokens=500,
        timeout=settings.AI_TIMEOUT_SECONDS,
        max_retries=0,
        groq_api_key=settings.GROQ_API_KEY,
    )


def get_embeddings():
    """Embedding model for the pgvector backend (Google)"""
    return GoogleGenerativeAIEmbeddings(
        model=settings.EMBEDDING_MODEL,
        google_api_key=settings.GOOGLE_API_KEY,
    )
