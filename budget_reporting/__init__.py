"""Health program budget reporting backend."""
