"""Health caching, circuit breaking and request trace recording."""
