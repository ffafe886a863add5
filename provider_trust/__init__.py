"""
ProviderTrust - Healthcare Provider Identity Verification Engine

Validates claimed healthcare-provider identity records against evidence of
varying trustworthiness and produces an auditable verification verdict
using provenance-aware scoring and world-aware address validation.
"""

__version__ = "1.0.0"
__author__ = "ProviderTrust Team"
