"""Synthetic S3 access-log generator with hot-reloadable configuration."""
