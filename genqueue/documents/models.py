"""
Document models

Inputs and outputs of the document section pipeline.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass
class ExperienceEntry:
    """One prior position of the subject"""
    company: str = ''
    title: str = ''
    start_date: str = ''
    end_date: str = ''
    responsibilities: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExperienceEntry':
        return cls(
            company=data.get('company', ''),
            title=data.get('title', ''),
            start_date=data.get('start_date', data.get('startDate', '')),
            end_date=data.get('end_date', data.get('endDate', '')),
            responsibilities=data.get('responsibilities', '')
        )


@dataclass
class SubjectData:
    """
    The person the document is about.

    ``experience`` is None when the input carries no experience data, which
    is different from an explicit empty list.
    """
    full_name: str
    current_title: str = ''
    skills: List[str] = field(default_factory=list)
    experience: Optional[List[ExperienceEntry]] = None
    education: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    years_of_experience: Optional[int] = None
    summary: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubjectData':
        """Build from snake_case or camelCase keys"""
        full_name = data.get('full_name') or data.get('fullName')
        if not full_name:
            raise ValueError("Subject data requires full_name")

        experience = data.get('experience')
        return cls(
            full_name=full_name,
            current_title=data.get('current_title', data.get('currentTitle', '')),
            skills=list(data.get('skills') or []),
            experience=(
                [ExperienceEntry.from_dict(entry) for entry in experience]
                if experience is not None else None
            ),
            education=list(data.get('education') or data.get('degrees') or []),
            certifications=list(data.get('certifications') or []),
            languages=list(data.get('languages') or data.get('spokenLanguages') or []),
            email=data.get('email'),
            phone=data.get('phone'),
            location=data.get('location') or data.get('currentLocation'),
            years_of_experience=data.get('years_of_experience', data.get('yearsOfExperience')),
            summary=data.get('summary')
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TargetContext:
    """The position the document is tailored to"""
    title: Optional[str] = None
    company: Optional[str] = None
    requirements: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    responsibilities: List[str] = field(default_factory=list)
    text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TargetContext':
        return cls(
            title=data.get('title') or data.get('jobTitle'),
            company=data.get('company') or data.get('client'),
            requirements=list(data.get('requirements') or []),
            skills=list(data.get('skills') or []),
            responsibilities=list(data.get('responsibilities') or []),
            text=data.get('text')
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SectionPayload:
    """Context needed to generate one section"""
    subject: SubjectData
    target: Optional[TargetContext] = None


@dataclass
class SectionRequest:
    """One section of a document, positioned by ``order``"""
    order: int
    title: str
    payload: SectionPayload


@dataclass
class SectionResult:
    """Outcome of one section"""
    order: int
    title: str
    content: str = ''
    success: bool = False
    error: Optional[str] = None
    processing_time: Optional[float] = None
    tokens_used: int = 0
    job_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineRun:
    """Result of one document generation run"""
    session_id: str
    sections: List[SectionResult]
    total_time: float
    total_tokens: int
    errors: List[str] = field(default_factory=list)
    master_job_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.errors and all(section.success for section in self.sections)

    @property
    def failed_sections(self) -> List[SectionResult]:
        return [section for section in self.sections if not section.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'success': self.success,
            'sections': [section.to_dict() for section in self.sections],
            'total_time': self.total_time,
            'total_tokens': self.total_tokens,
            'errors': list(self.errors),
            'master_job_id': self.master_job_id,
        }
