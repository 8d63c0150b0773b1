"""marketflow core: models, services, sources, ingestion and storage."""
