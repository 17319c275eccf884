"""Static defaults and environment lookups."""
