"""Dependency injection container for the progression system."""

from __future__ import annotations

from dependency_injector import containers, providers

from .catalog import StaticDomainCatalog
from .core import (
    AssignmentSequencer,
    FreezingPeriod,
    InterviewerRoster,
    ProgressTracker,
    RetryGate,
    RoundOutcomeRecorder,
    ScoringEngine,
)
from .oracle import HTTPEvaluationOracle, OpenAIEvaluationOracle
from .schemas.config import OracleConfig, RetryConfig
from .service import PipelineService
from .store import JsonDirectoryStore, MemoryDocumentStore


class ProgressionContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    store = providers.Singleton(MemoryDocumentStore)
    catalog = providers.Singleton(StaticDomainCatalog)
    oracle = providers.Object(None)
    audit_logger = providers.Object(None)

    scoring = providers.Singleton(
        ScoringEngine,
        oracle=oracle,
        pass_threshold=config.scoring.pass_threshold,
        criterion_floor=config.scoring.criterion_floor,
    )

    freezing_period = providers.Singleton(FreezingPeriod)
    retry_gate = providers.Singleton(RetryGate, freezing_period=freezing_period)

    progress = providers.Singleton(ProgressTracker, store=store, catalog=catalog)
    roster = providers.Singleton(InterviewerRoster, store=store, catalog=catalog)
    sequencer = providers.Singleton(AssignmentSequencer, store=store, roster=roster, progress=progress)
    recorder = providers.Singleton(RoundOutcomeRecorder, store=store, scoring=scoring, progress=progress)

    service = providers.Factory(
        PipelineService,
        store=store,
        catalog=catalog,
        progress=progress,
        recorder=recorder,
        retry_gate=retry_gate,
        sequencer=sequencer,
        roster=roster,
        audit_logger=audit_logger,
    )


def create_container(*, settings: dict | None = None) -> ProgressionContainer:
    """Instantiate container with optional overrides."""

    container = ProgressionContainer()

    if not settings:
        return container

    scoring_settings = settings.get("scoring", {}) if isinstance(settings, dict) else {}
    if scoring_settings:
        container.config.override({"scoring": scoring_settings})

    if "retry" in settings:
        retry_config = RetryConfig(**settings["retry"])
        container.freezing_period.override(
            providers.Singleton(
                FreezingPeriod,
                default_days=retry_config.freezing_period_days,
                env_var=retry_config.env_var,
            )
        )

    if "store" in settings and settings["store"].get("path"):
        container.store.override(providers.Singleton(JsonDirectoryStore, root=settings["store"]["path"]))

    if "catalog" in settings:
        container.catalog.override(
            providers.Singleton(StaticDomainCatalog, domains=settings["catalog"].get("domains", []))
        )

    if "oracle" in settings:
        oracle_config = OracleConfig(**settings["oracle"])
        if oracle_config.provider == "http":
            if not oracle_config.endpoint:
                raise ValueError("oracle.endpoint is required for the http provider")
            container.oracle.override(
                providers.Singleton(
                    HTTPEvaluationOracle,
                    oracle_config.endpoint,
                    oracle_config.api_key,
                    timeout=oracle_config.timeout,
                )
            )
        elif oracle_config.provider == "openai":
            container.oracle.override(
                providers.Singleton(
                    OpenAIEvaluationOracle,
                    api_key=oracle_config.api_key,
                    model=oracle_config.model,
                    temperature=oracle_config.temperature,
                    timeout=oracle_config.timeout,
                )
            )

    return container
