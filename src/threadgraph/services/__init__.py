"""Entity extraction and the storage facade."""
