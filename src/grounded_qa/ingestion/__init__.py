"""
Ingestion — upload validation, text extraction, chunking, and embedding.

This module turns an uploaded ``.txt`` / ``.md`` / ``.pdf`` file into a
stored Document with embedded, searchable Chunks, and removes documents
again with all of their dependent records.
"""
