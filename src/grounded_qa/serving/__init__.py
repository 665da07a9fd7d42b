"""
Serving — FastAPI application for document upload and grounded Q&A.

This module exposes the ingestion and answer pipelines over HTTP so they
can be deployed as a standalone container (``grounded-qa`` console script).
"""
