"""
Section planning

Turns a subject (and optional target) into the ordered list of sections a
document is made of.
"""

import logging
from typing import List, Optional

from genqueue.documents.models import SectionPayload, SectionRequest, SubjectData, TargetContext

logger = logging.getLogger(__name__)

FIXED_SECTIONS = (
    'HEADER',
    'PROFESSIONAL SUMMARY',
    'FUNCTIONAL SKILLS',
    'TECHNICAL SKILLS',
    'LANGUAGES',
    'AREAS OF EXPERTISE',
    'EDUCATION',
    'CERTIFICATIONS',
)

EXPERIENCE_SUMMARY_SECTION = 'PROFESSIONAL EXPERIENCES SUMMARY'
EXPERIENCE_SECTION_TEMPLATE = 'PROFESSIONAL EXPERIENCE {index}'

MAX_EXPERIENCE_SECTIONS = 5
DEFAULT_EXPERIENCE_SECTIONS = 3


def experience_section_count(
    subject: SubjectData,
    max_experiences: int = MAX_EXPERIENCE_SECTIONS,
    default_experiences: int = DEFAULT_EXPERIENCE_SECTIONS
) -> int:
    """Number of experience sections: one per entry, capped; default when none are listed"""
    count = len(subject.experience or []) or default_experiences
    return max(0, min(count, max_experiences))


def build_section_plan(
    subject: SubjectData,
    target: Optional[TargetContext] = None,
    max_experiences: int = MAX_EXPERIENCE_SECTIONS,
    default_experiences: int = DEFAULT_EXPERIENCE_SECTIONS
) -> List[SectionRequest]:
    """
    Build the ordered section list for a document.

    The fixed sections come first. When the subject has experience sections,
    an experiences summary is placed right before them.

    Args:
        subject: Subject data
        target: Optional target context shared by every section
        max_experiences: Cap on experience sections
        default_experiences: Count used when the subject has no experience data

    Returns:
        Sections sorted by order, orders contiguous from 0
    """
    payload = SectionPayload(subject=subject, target=target)

    titles = list(FIXED_SECTIONS)
    experience_count = experience_section_count(subject, max_experiences, default_experiences)
    if experience_count > 0:
        titles.append(EXPERIENCE_SUMMARY_SECTION)
        titles.extend(
            EXPERIENCE_SECTION_TEMPLATE.format(index=index + 1)
            for index in range(experience_count)
        )

    sections = [
        SectionRequest(order=order, title=title, payload=payload)
        for order, title in enumerate(titles)
    ]
    sections.sort(key=lambda section: section.order)

    logger.debug(
        f"Planned {len(sections)} sections for {subject.full_name} "
        f"({experience_count} experience sections)"
    )
    return sections
