"""FastAPI document API."""
