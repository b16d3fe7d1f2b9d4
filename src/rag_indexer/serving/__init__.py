"""
Serving — FastAPI application exposing ingestion and retrieval over HTTP.
"""
