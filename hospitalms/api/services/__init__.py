"""Services used by the API routes."""
