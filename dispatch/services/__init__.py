"""External services: task stores, geocoding and Redis."""
