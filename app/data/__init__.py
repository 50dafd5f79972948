"""Data module - tenant-scoped records and their routes."""
