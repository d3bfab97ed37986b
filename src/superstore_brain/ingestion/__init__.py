"""CSV ingestion and row selection."""
