"""Marketplace Catalog API."""
