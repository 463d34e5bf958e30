"""Records passed between the crawl stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterator, Tuple


class LinkState(str, Enum):
    LISTING = "listing"
    RESOLVED = "resolved"


@dataclass
class RulingMetadata:
    """One row of the result listing.

    ``link`` starts as the listing-page link and is replaced exactly once by
    :meth:`resolve` with the permanent document link.
    """

    case_number: str
    ruling_date: date
    document_size_bytes: int
    subject_reason: str
    link: str
    link_state: LinkState = LinkState.LISTING

    @property
    def is_resolved(self) -> bool:
        return self.link_state is LinkState.RESOLVED

    def resolve(self, permanent_link: str) -> None:
        if self.is_resolved:
            raise ValueError(f"{self.case_number} already resolved to {self.link}")
        if not permanent_link:
            raise ValueError(f"{self.case_number}: empty permanent link")
        self.link = permanent_link
        self.link_state = LinkState.RESOLVED


@dataclass(frozen=True)
class RulingContent:
    case_number: str
    raw_text: str
    export_link_url: str

    @classmethod
    def empty(cls) -> "RulingContent":
        """Sentinel telling callers to skip this ruling."""

        return cls(case_number="", raw_text="", export_link_url="")

    @property
    def is_valid(self) -> bool:
        return bool(self.case_number) and bool(self.raw_text)


class SectionKind(str, Enum):
    HEADER = "header"
    PARTIES = "parties"
    SYNOPSIS = "synopsis"
    HOLDING = "holding"
    REASONING = "reasoning"
    SIGNATURES = "signatures"


SECTION_ORDER: Tuple[SectionKind, ...] = tuple(SectionKind)


@dataclass(frozen=True)
class Section:
    kind: SectionKind
    lines: Tuple[str, ...]

    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class StructuredDocument:
    sections: Tuple[Section, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        kinds = tuple(section.kind for section in self.sections)
        if kinds != SECTION_ORDER:
            raise ValueError(f"sections out of order: {[k.value for k in kinds]}")

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def section(self, kind: SectionKind) -> Section:
        return self.sections[SECTION_ORDER.index(kind)]

    def render_text(self) -> str:
        return "\n\n".join(section.text() for section in self.sections) + "\n"


__all__ = [
    "LinkState",
    "RulingMetadata",
    "RulingContent",
    "SectionKind",
    "SECTION_ORDER",
    "Section",
    "StructuredDocument",
]
