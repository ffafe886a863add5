"""
Normalization and validation modules for ProviderTrust.

Handles configuration, fuzzy string similarity and world-aware postal
address assessment.
"""
