"""
Evidence acquisition adapters for ProviderTrust.

Adapters look a provider claim up in an identity registry and return an
EvidenceRecord tagged with its provenance. The core only inspects the
provenance tag and detail fields, never how the data was obtained.
"""

import logging
import random
import re
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from ..models import (
    AdapterError,
    EvidenceDetails,
    EvidenceRecord,
    LicenseStatus,
    ProvenanceType,
    ProviderRecord,
    utc_now,
)

logger = logging.getLogger(__name__)

REGISTRY_ID_PATTERN = re.compile(r"^[0-9]{10}$")

Clock = Callable[[], datetime]


def is_valid_registry_id(value) -> bool:
    """
    Check that a value has the registry ID shape (exactly 10 ASCII digits).

    Args:
        value: Claimed identifier

    Returns:
        True if the identifier has a valid shape
    """
    return isinstance(value, str) and bool(REGISTRY_ID_PATTERN.fullmatch(value))


def echo_claim(record: ProviderRecord, provenance: ProvenanceType,
               license_status: LicenseStatus, observed_at: datetime) -> EvidenceRecord:
    """Build evidence that repeats the claim under the given provenance."""
    return EvidenceRecord(
        provenance=provenance,
        observed_at=observed_at,
        details=EvidenceDetails(
            identifier=record.identifier,
            name=record.name,
            address=record.address,
            license_status=license_status,
            specialties=list(record.specialties)
        )
    )


class EvidenceAdapter(ABC):
    """Interface to an external identity registry."""

    @abstractmethod
    def lookup(self, record: ProviderRecord) -> EvidenceRecord:
        """
        Look up a provider claim.

        Args:
            record: Provider claim

        Returns:
            EvidenceRecord tagged with its provenance

        Raises:
            AdapterError: If the registry cannot be reached
        """


class SimulatedRegistryAdapter(EvidenceAdapter):
    """
    Deterministic stand-in for a live provider registry.

    Valid identifiers echo the claim as LIVE_API evidence. Configured test
    identifiers return fixed SIMULATION or INACTIVE records, and outages are
    drawn from an injected random generator so tests can pin them.
    """

    def __init__(self, config: Optional[Dict] = None, rng: Optional[random.Random] = None,
                 clock: Optional[Clock] = None):
        """
        Initialize simulated registry with configuration.

        Args:
            config: Acquisition configuration section
            rng: Random generator used for outage simulation
            clock: Callable returning the observation time
        """
        self.config = config or {}
        self.outage_rate = self.config.get("outage_rate", 0.0)
        self.latency_seconds = self.config.get("latency_seconds", 0.0)
        self.simulation_identifiers = set(self.config.get("simulation_identifiers", ["8888888888"]))
        self.inactive_identifiers = set(self.config.get("inactive_identifiers", ["9999999999"]))
        self.default_specialties = list(self.config.get("default_specialties", ["General Practice"]))
        self.rng = rng or random.Random()
        self.clock = clock or utc_now
        self.lookup_count = 0
        self._count_lock = threading.Lock()

        logger.info("Initialized SimulatedRegistryAdapter")

    def lookup(self, record: ProviderRecord) -> EvidenceRecord:
        now = self.clock()

        if not is_valid_registry_id(record.identifier):
            logger.warning("No valid registry ID provided, external lookup skipped")
            return echo_claim(record, ProvenanceType.USER_INPUT, LicenseStatus.ERROR, now)

        with self._count_lock:
            self.lookup_count += 1
        if self.latency_seconds:
            time.sleep(self.latency_seconds)

        if record.identifier in self.simulation_identifiers:
            return EvidenceRecord(
                provenance=ProvenanceType.SIMULATION,
                observed_at=now,
                details=EvidenceDetails(
                    identifier=record.identifier,
                    name="Dr. Med Trust Test",
                    address="123 Simulation Lane, Test City",
                    license_status=LicenseStatus.ACTIVE,
                    specialties=["Internal Testing"]
                )
            )

        if record.identifier in self.inactive_identifiers:
            return EvidenceRecord(
                provenance=ProvenanceType.LIVE_API,
                observed_at=now,
                details=EvidenceDetails(
                    identifier=record.identifier,
                    name="TEST PROVIDER - DO NOT USE",
                    address="INVALID ADDRESS",
                    license_status=LicenseStatus.INACTIVE,
                    specialties=[]
                )
            )

        if self.outage_rate and self.rng.random() < self.outage_rate:
            logger.warning("Registry service unavailable, using fallback evidence")
            return echo_claim(record, ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND, now)

        return EvidenceRecord(
            provenance=ProvenanceType.LIVE_API,
            observed_at=now,
            details=EvidenceDetails(
                identifier=record.identifier,
                name=record.name,
                address=record.address,
                license_status=LicenseStatus.ACTIVE,
                specialties=list(record.specialties) or list(self.default_specialties)
            )
        )


class CachingRegistryAdapter(EvidenceAdapter):
    """
    Caches live registry results per identifier.

    Fresh entries are served as CACHED_VALID. When the wrapped registry is
    unavailable, an expired entry is served as STALE_LIVE instead of the
    fallback evidence.
    """

    def __init__(self, inner: EvidenceAdapter, ttl_seconds: float = 86400,
                 clock: Optional[Clock] = None):
        """
        Initialize caching adapter.

        Args:
            inner: Adapter performing the real lookup
            ttl_seconds: Age after which a cached entry is stale
            clock: Callable returning the current time
        """
        self.inner = inner
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self._cache: Dict[str, Tuple[datetime, EvidenceDetails]] = {}
        self._lock = threading.Lock()

        logger.info(f"Initialized CachingRegistryAdapter with TTL {ttl_seconds}s")

    def _cached(self, identifier: str) -> Optional[Tuple[datetime, EvidenceDetails]]:
        with self._lock:
            return self._cache.get(identifier)

    def _tag(self, provenance: ProvenanceType, observed_at: datetime,
             details: EvidenceDetails) -> EvidenceRecord:
        return EvidenceRecord(provenance=provenance, observed_at=observed_at, details=details)

    def lookup(self, record: ProviderRecord) -> EvidenceRecord:
        if not is_valid_registry_id(record.identifier):
            return self.inner.lookup(record)

        now = self.clock()
        cached = self._cached(record.identifier)
        if cached is not None and now - cached[0] <= self.ttl:
            logger.debug(f"Cache hit for registry ID {record.identifier}")
            return self._tag(ProvenanceType.CACHED_VALID, cached[0], cached[1])

        try:
            evidence = self.inner.lookup(record)
        except AdapterError:
            if cached is None:
                raise
            logger.warning(f"Registry lookup failed, serving stale entry for {record.identifier}")
            return self._tag(ProvenanceType.STALE_LIVE, cached[0], cached[1])

        if evidence.provenance == ProvenanceType.LIVE_API:
            with self._lock:
                self._cache[record.identifier] = (evidence.observed_at, evidence.details)
            return evidence

        if evidence.provenance == ProvenanceType.SIMULATION and cached is not None:
            logger.warning(f"Registry unavailable, serving stale entry for {record.identifier}")
            return self._tag(ProvenanceType.STALE_LIVE, cached[0], cached[1])

        return evidence

    def clear(self):
        with self._lock:
            self._cache.clear()


def acquire_evidence(adapter: EvidenceAdapter, record: ProviderRecord,
                     clock: Optional[Clock] = None) -> EvidenceRecord:
    """
    Acquire evidence for a claim while enforcing the adapter contract.

    Claims without a valid registry ID never reach the adapter, and adapter
    failures degrade to SIMULATION evidence instead of propagating.

    Args:
        adapter: Evidence adapter to consult
        record: Provider claim
        clock: Callable returning the observation time

    Returns:
        EvidenceRecord for the claim
    """
    clock = clock or utc_now

    if not is_valid_registry_id(record.identifier):
        return echo_claim(record, ProvenanceType.USER_INPUT, LicenseStatus.ERROR, clock())

    try:
        evidence = adapter.lookup(record)
    except Exception as e:
        logger.warning(f"Evidence adapter {type(adapter).__name__} failed: {e}")
        return echo_claim(record, ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND, clock())

    if not isinstance(evidence, EvidenceRecord):
        logger.warning(f"Evidence adapter {type(adapter).__name__} returned {type(evidence).__name__}")
        return echo_claim(record, ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND, clock())

    return evidence


def create_registry_adapter(config: Dict, rng: Optional[random.Random] = None) -> EvidenceAdapter:
    """
    Convenience function to build the configured adapter chain.

    Args:
        config: Acquisition configuration section
        rng: Random generator for outage simulation

    Returns:
        Simulated registry wrapped in a cache when a TTL is configured
    """
    adapter = SimulatedRegistryAdapter(config, rng=rng)
    ttl_seconds = config.get("cache_ttl_seconds", 0)
    if ttl_seconds:
        return CachingRegistryAdapter(adapter, ttl_seconds=ttl_seconds)
    return adapter
