"""Adapters: CSV ingestion, HTTP upload and document storage."""
