"""Government-data vacuum: ingestion, upserts and entity resolution."""

__version__ = "1.0.0"
