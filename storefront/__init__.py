"""Storefront API: multi-role e-commerce backend."""
