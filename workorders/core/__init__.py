"""Configuration, logging, database and caching helpers."""
