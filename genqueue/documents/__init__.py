"""
genqueue documents

Multi-section document generation on top of the job queue.
"""

from .models import (
    ExperienceEntry,
    PipelineRun,
    SectionPayload,
    SectionRequest,
    SectionResult,
    SubjectData,
    TargetContext
)
from .pipeline import DocumentPipeline
from .sections import FIXED_SECTIONS, build_section_plan

__all__ = [
    'DocumentPipeline',
    'ExperienceEntry',
    'FIXED_SECTIONS',
    'PipelineRun',
    'SectionPayload',
    'SectionRequest',
    'SectionResult',
    'SubjectData',
    'TargetContext',
    'build_section_plan'
]
