"""HTTP surface of the work order service."""
