"""
Stage abstraction for pipeline processing.

Each stage wraps one unit of pipeline work (an external AI call plus the
persistence of its output). Stages receive the working set through an
immutable StageContext and return their result; the orchestrator adds
that result to a new context for the following stages.

Example:
    class CaptionStage(BaseStage):
        name = "caption"
        depends_on = ["extract"]
        step = PipelineStep.TRANSCRIBING

        async def execute(self, context: StageContext) -> str:
            segments = context.get_result("extract")
            return segments_to_vtt(segments)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from reeldocs.models.schemas import PipelineStep


class StageError(Exception):
    """Error during stage execution.

    Attributes:
        stage_name: Name of the stage that failed
        message: Error description
        cause: Original exception (if any)
    """

    def __init__(
        self,
        stage_name: str,
        message: str,
        cause: Exception | None = None,
    ):
        self.stage_name = stage_name
        self.message = message
        self.cause = cause
        super().__init__(f"[{stage_name}] {message}")


@dataclass
class StageContext:
    """Context passed between pipeline stages.

    Holds results from previous stages and provides type-safe access.
    Immutable once created - stages add results by returning new context.

    Attributes:
        results: Dictionary of stage_name -> result mapping
        metadata: Shared run metadata (job_id, video_id, languages, ...)

    Example:
        context = StageContext(metadata={"video_id": video.id})
        context = context.with_result("extract", segments)

        # Later stages access previous results
        segments = context.get_result("extract")
    """

    results: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def get_result(self, stage_name: str) -> Any:
        """Get result from a completed stage.

        Args:
            stage_name: Name of the stage whose result to retrieve

        Returns:
            Result from the specified stage

        Raises:
            KeyError: If stage result not found
        """
        if stage_name not in self.results:
            raise KeyError(
                f"Stage '{stage_name}' result not found. "
                f"Available: {list(self.results.keys())}"
            )
        return self.results[stage_name]

    def has_result(self, stage_name: str) -> bool:
        """Check if a stage result exists."""
        return stage_name in self.results

    def with_result(self, stage_name: str, result: Any) -> "StageContext":
        """Create new context with added result.

        Args:
            stage_name: Name of the stage
            result: Result to store

        Returns:
            New StageContext with the added result
        """
        new_results = {**self.results, stage_name: result}
        return StageContext(results=new_results, metadata=self.metadata)

    def with_metadata(self, key: str, value: Any) -> "StageContext":
        """Create new context with added metadata."""
        new_metadata = {**self.metadata, key: value}
        return StageContext(results=self.results, metadata=new_metadata)

    def get_metadata(self, key: str, default: Any = None) -> Any:
        """Get metadata value, or default if missing."""
        return self.metadata.get(key, default)

    @property
    def video_id(self) -> str:
        return self.metadata["video_id"]

    @property
    def project_id(self) -> str:
        return self.metadata["project_id"]

    @property
    def primary_language(self) -> str:
        return self.metadata["languages"][0]


class BaseStage(ABC):
    """Abstract base class for pipeline stages.

    Subclasses must implement:
    - name: Unique stage identifier
    - execute(): Async method that performs the work and persists it

    Optional overrides:
    - depends_on: Stage names whose results must be in the context
    - step: PipelineStep reported while the stage runs
    """

    name: str
    depends_on: list[str] = []
    step: PipelineStep | None = None

    @abstractmethod
    async def execute(self, context: StageContext) -> Any:
        """Execute the stage.

        Args:
            context: Context with results from previous stages

        Returns:
            Stage result

        Raises:
            StageError: If execution fails
        """
        pass

    def validate_context(self, context: StageContext) -> None:
        """Validate that all dependencies are satisfied.

        Raises:
            StageError: If dependencies are missing
        """
        missing = [dep for dep in self.depends_on if not context.has_result(dep)]
        if missing:
            raise StageError(
                self.name,
                f"Missing dependencies: {missing}",
            )
