"""Webhook inbound path.

Receives Shopify order webhooks. Each webhook is signature-verified,
normalized, deduplicated against the warehouse, and written to BigQuery.
"""
