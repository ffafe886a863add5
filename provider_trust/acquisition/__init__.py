"""
Evidence acquisition for ProviderTrust.

Registry adapters returning provenance-tagged evidence for provider claims.
"""
