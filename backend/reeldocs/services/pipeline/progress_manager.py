"""
Progress estimation for pipeline steps.

Overall progress is a fraction (0..1). Every step owns a band; sub-items
of a step (e.g. target languages) split its band evenly:

    uploading        0.05
    transcribing     0.05 -> 0.20
    generating_docs  0.20 -> 0.55
    translating      0.55 -> 0.95
    complete         1.00

Only a completed job reaches 1.0.
"""

from reeldocs.models.schemas import PipelineStep

# Step -> (start, end) of its progress band
STEP_BANDS: dict[PipelineStep, tuple[float, float]] = {
    PipelineStep.UPLOADING: (0.05, 0.05),
    PipelineStep.TRANSCRIBING: (0.05, 0.2),
    PipelineStep.GENERATING_DOCS: (0.2, 0.55),
    PipelineStep.TRANSLATING: (0.55, 0.95),
    PipelineStep.COMPLETE: (1.0, 1.0),
}

def estimate_progress(step: PipelineStep, sub_index: int = 1, total: int = 1) -> float:
    """
    Estimate overall progress after ``sub_index`` of ``total`` items of a step.

    Args:
        step: Current pipeline step
        sub_index: Items of the step finished so far (clamped to 0..total)
        total: Items in the step; <= 0 means the step is finished

    Returns:
        Overall progress (0..1), rounded to 4 places

    Raises:
        ValueError: For the error step, which has no progress of its own

    Example:
        >>> estimate_progress(PipelineStep.TRANSLATING, 1, 2)
        0.75
    """
    if step not in STEP_BANDS:
        raise ValueError(f"No progress band for step: {step.value}")

    start, end = STEP_BANDS[step]
    if total <= 0:
        return end

    done = min(max(sub_index, 0), total)
    return round(start + (end - start) * done / total, 4)
