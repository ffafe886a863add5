"""
Scoring engine for ProviderTrust.

Fuses address quality, registry evidence and fuzzy field matches into a
trust-scaled identity score and verification verdict.
"""
