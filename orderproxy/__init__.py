"""Caching proxy and cart logic for a Square-backed restaurant storefront."""
