"""Extraction API access and response parsing."""
