"""Marketplace upload ingestion service."""
