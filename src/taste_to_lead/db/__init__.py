"""Database storage for staging jobs."""

from taste_to_lead.db.staging_store import JobStore, StagingStorage

__all__ = ["JobStore", "StagingStorage"]
