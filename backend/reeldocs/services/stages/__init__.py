"""
Pipeline stages.

Stages, in execution order:
    ExtractStage -> CaptionStage -> GenerateDocsStage -> TranslateStage (per language)
"""

from reeldocs.services.stages.base import BaseStage, StageContext, StageError
from reeldocs.services.stages.caption_stage import CaptionStage
from reeldocs.services.stages.extract_stage import ExtractStage
from reeldocs.services.stages.generate_docs_stage import GenerateDocsStage
from reeldocs.services.stages.translate_stage import TranslateStage, TranslationOutcome

__all__ = [
    "BaseStage",
    "StageContext",
    "StageError",
    "ExtractStage",
    "CaptionStage",
    "GenerateDocsStage",
    "TranslateStage",
    "TranslationOutcome",
]
