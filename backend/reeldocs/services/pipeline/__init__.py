"""
Pipeline module for video processing.

This package contains the pipeline coordination components:
- orchestrator: Runs a job through the stage sequence
- checkpoints: Detects persisted stage output for resumable runs
- progress_manager: Step -> overall progress estimation
- retry_coordinator: Re-runs failed jobs
- processing_strategy: AI provider selection by model name

Example:
    from reeldocs.services.pipeline import PipelineOrchestrator

    orchestrator = PipelineOrchestrator(
        session_factory, job_manager, extractor, generator, translator
    )
    await orchestrator.run(job_id)

    # With provider selection
    from reeldocs.services.pipeline import ProcessingStrategy

    strategy = ProcessingStrategy(settings)
    client = strategy.get_client("claude-sonnet-4-5")
    text, usage = await client.generate("...")
"""

from .checkpoints import CheckpointResolver, Complete, NotStarted
from .orchestrator import PipelineOrchestrator
from .processing_strategy import ProcessingStrategy, ProviderInfo, ProviderType
from .progress_manager import STEP_BANDS, estimate_progress
from .retry_coordinator import RetryCoordinator

__all__ = [
    # Main orchestrator
    "PipelineOrchestrator",
    # Checkpoints
    "CheckpointResolver",
    "Complete",
    "NotStarted",
    # Progress
    "STEP_BANDS",
    "estimate_progress",
    # Retry
    "RetryCoordinator",
    # Provider selection
    "ProcessingStrategy",
    "ProviderType",
    "ProviderInfo",
]
