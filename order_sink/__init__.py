"""Shopify order webhook sink: verified, deduplicated BigQuery ingestion."""

__version__ = "0.1.0"
