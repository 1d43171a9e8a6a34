"""Response models for the document API."""

from hospitalms.api.models.health import DatabaseHealth, HealthResponse

__all__ = ["DatabaseHealth", "HealthResponse"]
