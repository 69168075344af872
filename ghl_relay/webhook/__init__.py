"""Webhook translation between Evolution API and GoHighLevel."""
