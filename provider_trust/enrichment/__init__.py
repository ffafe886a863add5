"""
Profile enrichment for ProviderTrust.

Generates display text from verified evidence details.
"""
