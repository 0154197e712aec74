"""
Typed failures raised by the import pipeline.

Only ConfigurationError and CatalogFetchError leave the orchestrator entry
point; the others are handled (logged, counted) below the job level.
"""


class SearchAIError(Exception):
    """Base exception for all import pipeline errors"""

    def __init__(self, message: str, app_id: int | None = None, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.app_id = app_id
        self.original_error = original_error

    def __str__(self):
        if self.app_id is not None:
            return f"[app {self.app_id}] {self.message}"
        return self.message


class ConfigurationError(SearchAIError):
    """Missing or invalid configuration for a tenant's catalog plugin"""
    pass


class CatalogFetchError(SearchAIError):
    """The catalog could not be fetched from the merchant platform"""
    pass


class ImageDescriptionError(SearchAIError):
    """The AI provider could not describe the images (degradable)"""
    pass


class VectorIndexError(SearchAIError):
    """A vector index write, delete or update failed"""
    pass
