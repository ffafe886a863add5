"""
Display-text enrichment for ProviderTrust.

Enrichers turn verified evidence details into a short bio and education
summary. They only ever see verified fields, never the raw claim, and an
enrichment failure never affects the verification verdict.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from ..models import EnrichmentData, EnrichmentError, EvidenceDetails

logger = logging.getLogger(__name__)

BIO_UNAVAILABLE = "Bio unavailable."
EDUCATION_UNAVAILABLE = "Education data unavailable."
SERVICE_ERROR_BIO = "Bio unavailable (Service Error)"


def build_enrichment_prompt(details: EvidenceDetails) -> str:
    """
    Build the summarizer prompt from verified details.

    Args:
        details: Verified evidence details

    Returns:
        Prompt text
    """
    specialties = ", ".join(details.specialties) or "General Medicine"
    return (
        "Role: Medical Data Summarizer\n"
        "Task: Generate a professional bio and education summary based ONLY on the provided verified data blocks.\n"
        "Constraint: Do NOT assess credibility. Do NOT invent missing facts. Keep it concise.\n\n"
        "Input:\n"
        f"Name: {details.name}\n"
        f"Specialties: {specialties}\n"
        f"Location: {details.address}\n\n"
        "Output JSON:\n"
        "{\n"
        '  "bio": "2 sentence professional bio...",\n'
        '  "education_summary": "Inferred likely medical background..."\n'
        "}"
    )


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """
    Extract the outermost JSON object embedded in free text.

    Args:
        text: Model output

    Returns:
        Parsed object, or None if no valid object is present
    """
    if not isinstance(text, str):
        return None

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None

    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON from enrichment response")
        return None
    return parsed if isinstance(parsed, dict) else None


def enrichment_from_payload(payload: Optional[Dict[str, Any]]) -> EnrichmentData:
    """Build enrichment text from a parsed response, with placeholders for gaps."""
    payload = payload or {}
    bio = payload.get("bio")
    education = payload.get("education_summary")
    return EnrichmentData(
        bio=bio if isinstance(bio, str) and bio else BIO_UNAVAILABLE,
        education_summary=education if isinstance(education, str) and education else EDUCATION_UNAVAILABLE
    )


class Enricher(ABC):
    """Collaborator producing display text from verified details."""

    @abstractmethod
    def enrich(self, details: EvidenceDetails) -> EnrichmentData:
        """
        Produce display text for a verified provider.

        Args:
            details: Verified evidence details

        Returns:
            EnrichmentData

        Raises:
            EnrichmentError: If the collaborator fails
        """


class StaticEnricher(Enricher):
    """Offline enricher composing text directly from the verified fields."""

    def enrich(self, details: EvidenceDetails) -> EnrichmentData:
        specialties = ", ".join(details.specialties) or "General Medicine"
        location = details.address or "an unlisted location"
        return EnrichmentData(
            bio=f"{details.name} is a registered provider practicing {specialties} at {location}.",
            education_summary=EDUCATION_UNAVAILABLE
        )


class HttpEnricher(Enricher):
    """
    Enricher backed by an HTTP text-generation endpoint.

    The endpoint accepts {"task": "enrich", "prompt": ...} and answers
    {"ok": true, "text": ..., "json": {...}}.
    """

    def __init__(self, endpoint: str, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        """
        Initialize HTTP enricher.

        Args:
            endpoint: URL of the enrichment endpoint
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (optional)
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)

        logger.info(f"Initialized HttpEnricher for {endpoint}")

    def enrich(self, details: EvidenceDetails) -> EnrichmentData:
        prompt = build_enrichment_prompt(details)
        try:
            resp = self.client.post(
                self.endpoint,
                json={"task": "enrich", "prompt": prompt},
                timeout=self.timeout
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EnrichmentError(f"Enrichment request failed: {e}") from e

        if not isinstance(body, dict) or not body.get("ok"):
            error = body.get("error") if isinstance(body, dict) else None
            raise EnrichmentError(error or "Enrichment service returned an error")

        payload = body.get("json")
        if not isinstance(payload, dict):
            payload = extract_json(body.get("text") or "")
        return enrichment_from_payload(payload)

    def close(self):
        self.client.close()


def enrich_safely(enricher: Enricher, details: EvidenceDetails) -> EnrichmentData:
    """
    Run an enricher, substituting placeholder text on any failure.

    Args:
        enricher: Enrichment collaborator
        details: Verified evidence details

    Returns:
        EnrichmentData, never raising
    """
    try:
        result = enricher.enrich(details)
        if not isinstance(result, EnrichmentData):
            raise EnrichmentError(f"Enricher returned {type(result).__name__}")
        return result
    except Exception as e:
        logger.warning(f"Enrichment failed, using placeholder text: {e}")
        return EnrichmentData(bio=SERVICE_ERROR_BIO, education_summary="")


def create_enricher(config: Dict) -> Enricher:
    """
    Convenience function to build the configured enricher.

    Args:
        config: Enrichment configuration section

    Returns:
        HttpEnricher when an endpoint is configured, StaticEnricher otherwise
    """
    endpoint = config.get("endpoint")
    if endpoint:
        return HttpEnricher(endpoint, timeout=config.get("timeout_seconds", 30))
    return StaticEnricher()
