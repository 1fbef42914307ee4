"""Client-side entry points: CLI and document ingestion."""
