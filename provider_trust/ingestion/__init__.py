"""
Ingestion module for ProviderTrust.

Handles loading and boundary validation of provider claims, and the
security gate that screens them before any external lookup.
"""
