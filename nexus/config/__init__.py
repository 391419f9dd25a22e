"""Settings and persisted key storage."""
