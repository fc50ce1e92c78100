"""Tests for progress estimation."""

import pytest

from reeldocs.models.schemas import PipelineStep
from reeldocs.services.pipeline.progress_manager import estimate_progress


def _run_sequence(target_languages: int) -> list[float]:
    """Progress values reported by one run, in order."""
    values = [
        estimate_progress(PipelineStep.UPLOADING),
        estimate_progress(PipelineStep.TRANSCRIBING, 0, 2),
        estimate_progress(PipelineStep.TRANSCRIBING, 1, 2),
        estimate_progress(PipelineStep.TRANSCRIBING, 2, 2),
        estimate_progress(PipelineStep.GENERATING_DOCS, 0, 1),
        estimate_progress(PipelineStep.GENERATING_DOCS, 1, 1),
    ]
    for index in range(1, target_languages + 1):
        values.append(estimate_progress(PipelineStep.TRANSLATING, index - 1, target_languages))
        values.append(estimate_progress(PipelineStep.TRANSLATING, index, target_languages))
    values.append(estimate_progress(PipelineStep.COMPLETE))
    return values


def test_band_boundaries():
    assert estimate_progress(PipelineStep.UPLOADING) == 0.05
    assert estimate_progress(PipelineStep.TRANSCRIBING, 1, 2) == 0.125
    assert estimate_progress(PipelineStep.TRANSCRIBING) == 0.2
    assert estimate_progress(PipelineStep.GENERATING_DOCS) == 0.55
    assert estimate_progress(PipelineStep.TRANSLATING, 1, 2) == 0.75
    assert estimate_progress(PipelineStep.TRANSLATING, 2, 2) == 0.95
    assert estimate_progress(PipelineStep.COMPLETE) == 1.0


def test_translation_spreads_evenly():
    values = [estimate_progress(PipelineStep.TRANSLATING, i, 4) for i in range(5)]
    assert values == [0.55, 0.65, 0.75, 0.85, 0.95]


@pytest.mark.parametrize("target_languages", [0, 1, 2, 3, 7])
def test_progress_is_non_decreasing_and_full_only_at_completion(target_languages):
    values = _run_sequence(target_languages)

    assert values == sorted(values)
    assert all(value < 1.0 for value in values[:-1])
    assert values[-1] == 1.0


def test_sub_index_is_clamped():
    assert estimate_progress(PipelineStep.TRANSLATING, 5, 2) == 0.95
    assert estimate_progress(PipelineStep.TRANSLATING, -1, 2) == 0.55


def test_empty_step_reports_band_end():
    assert estimate_progress(PipelineStep.TRANSLATING, 0, 0) == 0.95


def test_error_step_has_no_progress():
    with pytest.raises(ValueError):
        estimate_progress(PipelineStep.ERROR)
