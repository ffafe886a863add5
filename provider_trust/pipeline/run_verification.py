"""
Workflow orchestrator for ProviderTrust.

Drives a provider claim through the security gate, address assessment,
evidence acquisition, scoring and enrichment stages, persisting each
stage's output as it completes so an interrupted run leaves a partial,
inspectable trail.
"""

import argparse
import hashlib
import logging
import random
import sqlite3
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..acquisition.registry_adapter import EvidenceAdapter, acquire_evidence, create_registry_adapter
from ..audit.audit_logger import ProviderStateStore
from ..enrichment.enricher import SERVICE_ERROR_BIO, Enricher, create_enricher, enrich_safely
from ..ingestion.schema_validator import load_provider_file, validate_provider_batch
from ..ingestion.security_gate import SecurityGate
from ..match.scorer import TrustScorer
from ..models import (
    Agent,
    EventLevel,
    ProgressEvent,
    ProvenanceType,
    ProviderRecord,
    ProviderState,
    VerificationStatus,
    WorkflowStatus,
    utc_now,
)
from ..normalize.address_validator import GLOBAL_COUNTRY, AddressValidator
from ..normalize.config import DEFAULT_CONFIG_PATH, get_default_config, load_config, validate_config
from ..reporting.directory_report import generate_directory_report, save_directory_report

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

STATUS_BY_VERDICT = {
    VerificationStatus.VERIFIED: WorkflowStatus.READY,
    VerificationStatus.FLAGGED: WorkflowStatus.FLAGGED,
    VerificationStatus.BLOCKED: WorkflowStatus.BLOCKED,
    VerificationStatus.UNVERIFIED: WorkflowStatus.UNVERIFIED,
}

EVENT_LOG_LEVELS = {
    EventLevel.INFO: logging.INFO,
    EventLevel.SUCCESS: logging.INFO,
    EventLevel.WARNING: logging.WARNING,
    EventLevel.ERROR: logging.ERROR,
}

PROVENANCE_EVENT_LEVELS = {
    ProvenanceType.LIVE_API: EventLevel.SUCCESS,
    ProvenanceType.CACHED_VALID: EventLevel.SUCCESS,
    ProvenanceType.STALE_LIVE: EventLevel.WARNING,
    ProvenanceType.SIMULATION: EventLevel.WARNING,
    ProvenanceType.USER_INPUT: EventLevel.WARNING,
}

VERDICT_EVENT_LEVELS = {
    VerificationStatus.VERIFIED: EventLevel.SUCCESS,
    VerificationStatus.FLAGGED: EventLevel.WARNING,
    VerificationStatus.BLOCKED: EventLevel.ERROR,
    VerificationStatus.UNVERIFIED: EventLevel.WARNING,
}

ENRICHED_STATUSES = (WorkflowStatus.READY, WorkflowStatus.FLAGGED)


def make_provider_id(record: ProviderRecord) -> str:
    """
    Derive a stable provider id from the claimed identity.

    Args:
        record: Provider claim

    Returns:
        Provider id of the form PROV-<16 hex chars>
    """
    hash_string = "|".join(
        value.lower().strip() for value in (record.identifier, record.name, record.address)
    )
    return f"PROV-{hashlib.sha256(hash_string.encode()).hexdigest()[:16].upper()}"


class VerificationWorkflow:
    """
    Runs the verification workflow for individual provider claims.

    Runs for different providers share no mutable state apart from the
    collaborators passed in, so a batch can be processed concurrently.
    """

    def __init__(self, config: Optional[Dict] = None, adapter: Optional[EvidenceAdapter] = None,
                 enricher: Optional[Enricher] = None, store: Optional[ProviderStateStore] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize workflow with configuration and collaborators.

        Args:
            config: Full ProviderTrust configuration (defaults if omitted)
            adapter: Evidence adapter (built from config if omitted)
            enricher: Enrichment collaborator (built from config if omitted)
            store: State store for per-stage persistence (optional)
            progress_callback: Receives every ProgressEvent (optional)
        """
        self.config = config or get_default_config()

        self.security_gate = SecurityGate()
        self.address_validator = AddressValidator(self.config.get("address", {}))
        self.scorer = TrustScorer(self.config.get("scoring", {}))
        self.adapter = adapter or create_registry_adapter(self.config.get("acquisition", {}))
        self.enricher = enricher or create_enricher(self.config.get("enrichment", {}))
        self.store = store
        self.progress_callback = progress_callback

        logger.info("Initialized ProviderTrust verification workflow")

    def _start_stage_timer(self, provider_id: str, stage_name: str) -> float:
        """Start timing for a workflow stage."""
        logger.debug(f"Starting stage: {stage_name} for {provider_id}")
        return time.time()

    def _end_stage_timer(self, provider_id: str, stage_name: str, started: float):
        """End timing for a workflow stage."""
        duration = time.time() - started
        logger.info(f"Completed stage: {stage_name} for {provider_id} in {duration:.2f} seconds")

    def _emit(self, provider_id: str, agent: Agent, message: str,
              level: EventLevel = EventLevel.INFO):
        """Log, record and publish a progress event. Never raises."""
        event = ProgressEvent(provider_id=provider_id, agent=agent, message=message, level=level)
        logger.log(EVENT_LOG_LEVELS[level], f"[{agent.value}] {provider_id}: {message}")

        if self.store is not None:
            try:
                self.store.log_event(event)
            except sqlite3.Error as e:
                logger.error(f"Failed to record progress event for {provider_id}: {e}")

        if self.progress_callback is not None:
            try:
                self.progress_callback(event)
            except Exception as e:
                logger.warning(f"Progress callback failed for {provider_id}: {e}")

    def _persist(self, state: ProviderState, **updates):
        """
        Apply stage output to the in-memory state and the store.

        Args:
            state: State owned by the current run
            **updates: ProviderState fields to set
        """
        for key, value in updates.items():
            setattr(state, key, value)
        state.last_updated = utc_now()

        if self.store is None:
            return

        try:
            self.store.update_state(state.provider_id, **updates)
        except sqlite3.Error as e:
            logger.error(f"Failed to persist {', '.join(updates)} for {state.provider_id}: {e}")
            self._emit(state.provider_id, Agent.SYSTEM, f"Persistence failure: {e}", EventLevel.ERROR)

    def _assess_address(self, state: ProviderState, record: ProviderRecord):
        started = self._start_stage_timer(state.provider_id, "address_assessment")
        assessment = self.address_validator.assess(record.address)
        country = assessment.inferred_country or GLOBAL_COUNTRY
        level = EventLevel.SUCCESS if not assessment.issues else EventLevel.WARNING
        self._emit(
            state.provider_id, Agent.VALIDATOR,
            f"Address assessed ({country}): {assessment.confidence}% confidence", level
        )
        self._end_stage_timer(state.provider_id, "address_assessment", started)
        return assessment

    def run(self, provider_id: str, record: ProviderRecord) -> ProviderState:
        """
        Run the full verification workflow for one provider claim.

        Args:
            provider_id: Identifier under which state is persisted
            record: Validated provider claim

        Returns:
            Final ProviderState; on unexpected failure the partial state
            with status Unverified
        """
        state = ProviderState(provider_id=provider_id)
        run_started = time.time()

        try:
            source = f" (source: {record.input_source})" if record.input_source else ""
            self._emit(provider_id, Agent.ORCHESTRATOR, f"Starting provider validation workflow{source}")
            # A re-run replaces every artifact left by the previous run
            self._persist(
                state,
                record=record,
                status=WorkflowStatus.PROCESSING,
                security_check=None,
                address_verification=None,
                evidence=None,
                scoring=None,
                enrichment=None,
                audit_log=[]
            )

            # 1. Security gate
            started = self._start_stage_timer(provider_id, "security_gate")
            security = self.security_gate.check(record)
            self._end_stage_timer(provider_id, "security_gate", started)

            if not security.passed:
                for reason in security.reasons:
                    self._emit(provider_id, Agent.SECURITY, reason, EventLevel.ERROR)
                # Informational only; the record is blocked either way
                address = self._assess_address(state, record)
                self._persist(
                    state,
                    security_check=security,
                    address_verification=address,
                    audit_log=list(security.reasons),
                    status=WorkflowStatus.BLOCKED
                )
                self._emit(provider_id, Agent.ORCHESTRATOR, "Workflow halted: record blocked", EventLevel.ERROR)
                return state

            self._emit(provider_id, Agent.SECURITY, "Security checks passed", EventLevel.SUCCESS)
            self._persist(state, security_check=security)

            # 2. Address assessment
            address = self._assess_address(state, record)
            self._persist(state, address_verification=address)

            # 3. Evidence acquisition
            started = self._start_stage_timer(provider_id, "evidence_acquisition")
            self._emit(provider_id, Agent.ACQUISITION, "Querying provider registry")
            evidence = acquire_evidence(self.adapter, record)
            self._emit(
                provider_id, Agent.ACQUISITION,
                f"Evidence acquired via {evidence.provenance.value} "
                f"(license {evidence.details.license_status.value})",
                PROVENANCE_EVENT_LEVELS[evidence.provenance]
            )
            self._persist(state, evidence=evidence)
            self._end_stage_timer(provider_id, "evidence_acquisition", started)

            # 4. Scoring
            started = self._start_stage_timer(provider_id, "scoring")
            scoring = self.scorer.score(record, evidence, address)
            status = STATUS_BY_VERDICT[scoring.final_status]
            self._emit(
                provider_id, Agent.JUDGE,
                f"Identity score {scoring.identity_score}/100 "
                f"(trust {scoring.trust_level:.1f}): {scoring.final_status.value}",
                VERDICT_EVENT_LEVELS[scoring.final_status]
            )
            self._persist(state, scoring=scoring, audit_log=list(scoring.discrepancies), status=status)
            self._end_stage_timer(provider_id, "scoring", started)

            # 5. Enrichment, from verified details only
            if status in ENRICHED_STATUSES:
                started = self._start_stage_timer(provider_id, "enrichment")
                self._emit(provider_id, Agent.ENRICHMENT, "Generating profile summary")
                enrichment = enrich_safely(self.enricher, evidence.details)
                if enrichment.bio == SERVICE_ERROR_BIO:
                    self._emit(provider_id, Agent.ENRICHMENT, "Enrichment unavailable, placeholder stored",
                               EventLevel.WARNING)
                else:
                    self._emit(provider_id, Agent.ENRICHMENT, "Profile summary generated", EventLevel.SUCCESS)
                self._persist(state, enrichment=enrichment)
                self._end_stage_timer(provider_id, "enrichment", started)

            self._emit(provider_id, Agent.ORCHESTRATOR, f"Workflow complete: {status.value}", EventLevel.SUCCESS)

        except Exception as e:
            logger.exception(f"Verification workflow failed for {provider_id}")
            self._emit(provider_id, Agent.SYSTEM, f"Critical system failure: {e}", EventLevel.ERROR)
            self._persist(state, status=WorkflowStatus.UNVERIFIED)

        logger.info(f"Provider {provider_id} finished as {state.status.value} "
                    f"in {time.time() - run_started:.2f} seconds")
        return state

    def run_batch(self, items: Iterable[Tuple[str, ProviderRecord]],
                  max_workers: Optional[int] = None) -> List[ProviderState]:
        """
        Run the workflow for many providers concurrently.

        Args:
            items: (provider_id, record) pairs
            max_workers: Worker threads (pipeline.max_workers if omitted)

        Returns:
            Final states in input order
        """
        items = list(items)
        if max_workers is None:
            max_workers = self.config.get("pipeline", {}).get("max_workers", 4)

        logger.info(f"Running verification for {len(items)} providers with {max_workers} workers")
        if not items:
            return []

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            states = list(executor.map(lambda item: self.run(item[0], item[1]), items))

        return states


def main():
    """Main entry point for the ProviderTrust verification pipeline."""
    parser = argparse.ArgumentParser(description="ProviderTrust Identity Verification Pipeline")
    parser.add_argument("--input", required=True, help="Provider records file (.csv, .json or .jsonl)")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--db", help="State database path (overrides audit.db_path)")
    parser.add_argument("--output", help="Output directory for the directory report")
    parser.add_argument("--workers", type=int, help="Concurrent workflow runs")
    parser.add_argument("--seed", type=int, help="Seed for the simulated registry")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()

    # Setup logging
    Path("logs").mkdir(exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("logs/provider_trust.log")
        ]
    )

    try:
        config = load_config(args.config)
        if not validate_config(config):
            logger.error(f"Invalid configuration in {args.config}")
            sys.exit(1)

        records_df = load_provider_file(args.input)
        records, rejects_df = validate_provider_batch(records_df)

        rng = random.Random(args.seed) if args.seed is not None else None
        workflow = VerificationWorkflow(
            config,
            adapter=create_registry_adapter(config["acquisition"], rng=rng),
            enricher=create_enricher(config["enrichment"]),
            store=ProviderStateStore(args.db or config["audit"]["db_path"])
        )

        start_time = time.time()
        states = workflow.run_batch(
            [(make_provider_id(record), record) for record in records],
            max_workers=args.workers
        )
        report = generate_directory_report(states)

        if args.output:
            save_directory_report(report, args.output)
            if len(rejects_df):
                rejects_df.to_csv(Path(args.output) / "rejected_records.csv", index=False)

        # Print summary
        print("\n" + "="*50)
        print("VERIFICATION SUMMARY")
        print("="*50)
        print(f"Input Records: {len(records_df):,}")
        print(f"Rejected Records: {len(rejects_df):,}")
        print(f"Verified: {report['verified_count']:,}")
        print(f"Flagged: {report['flagged_count']:,}")
        print(f"Blocked: {report['blocked_count']:,}")
        print(f"Unverified: {report['unverified_count']:,}")
        print(f"Average Confidence: {report['avg_confidence']}")
        print(f"Total Duration: {time.time() - start_time:.2f} seconds")
        print("="*50)

    except Exception as e:
        logger.error(f"Verification pipeline failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
