"""
Template section matching.

Issue templates are Markdown documents split into sections by header lines
such as ``### Describe the bug [REQUIRED]``. The checker parses both the
template and a candidate issue body into sections and reports:

- template sections the candidate dropped entirely
- required sections the candidate left exactly as the template wrote them

Section identity is the clean name: prefix and required marker removed,
trimmed and lowercased, so ``### Steps [REQUIRED]`` and ``### steps`` are
the same section.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ossbot.enums import ValidationLevel

log = structlog.get_logger(__name__)

DEFAULT_SECTION_PREFIX = "###"
DEFAULT_REQUIRED_MARKER = "[REQUIRED]"

_WORD_PATTERN = re.compile(r"\w+|[^\w\s]")


@dataclass(frozen=True)
class TemplateSection:
    """A single header-delimited section of a Markdown document."""

    raw_header_line: str
    """Header line exactly as written."""

    clean_name: str
    """Header with prefix and required marker removed, trimmed and lowercased."""

    required: bool
    """True when the raw header contains the required marker."""

    body_lines: tuple[str, ...] = ()
    """Lines between this header and the next one."""

    @property
    def body(self) -> str:
        return "\n".join(self.body_lines)


@dataclass(frozen=True)
class TemplateDocument:
    """Sections of a parsed document in first-seen order."""

    sections: tuple[TemplateSection, ...] = ()
    index: dict[str, TemplateSection] = field(default_factory=dict, compare=False, repr=False)

    def get(self, clean_name: str) -> TemplateSection | None:
        return self.index.get(clean_name)

    def __contains__(self, clean_name: str) -> bool:
        return clean_name in self.index

    @property
    def names(self) -> list[str]:
        return [section.clean_name for section in self.sections]

    @property
    def required(self) -> list[TemplateSection]:
        return [section for section in self.sections if section.required]


@dataclass(frozen=True)
class SectionCheckResult:
    """Section names that were checked and the subset that failed."""

    all: tuple[str, ...] = ()
    invalid: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.invalid


class TemplateCheckKind(str, Enum):
    """Outcome of validating an issue body against a template."""

    VALID = "valid"
    MISSING_SECTIONS = "missing_sections"
    EMPTY_REQUIRED_SECTIONS = "empty_required_sections"
    OTHER_ERROR = "other_error"


@dataclass(frozen=True)
class TemplateCheckResult:
    """Combined result of both template checks.

    ``skipped`` is set when validation did not run at all (disabled for the
    issue or the template could not be fetched). A skipped result is never
    reported to the issue author.
    """

    kind: TemplateCheckKind = TemplateCheckKind.VALID
    missing_sections: tuple[str, ...] = ()
    empty_sections: tuple[str, ...] = ()
    skipped: bool = False
    error: str | None = None

    @property
    def matches(self) -> bool:
        return self.kind == TemplateCheckKind.VALID or self.skipped

    @classmethod
    def skip(cls, error: str | None = None) -> "TemplateCheckResult":
        kind = TemplateCheckKind.OTHER_ERROR if error else TemplateCheckKind.VALID
        return cls(kind=kind, skipped=True, error=error)


def words_equal(a: str, b: str) -> bool:
    """Compare two texts word by word.

    Whitespace and line breaks are ignored; any added, removed or changed
    word or punctuation mark makes the texts different.
    """
    return _WORD_PATTERN.findall(a) == _WORD_PATTERN.findall(b)


class TemplateChecker:
    """Checks whether issue bodies follow a Markdown template."""

    def __init__(
        self,
        template_text: str,
        section_prefix: str = DEFAULT_SECTION_PREFIX,
        required_marker: str = DEFAULT_REQUIRED_MARKER,
    ):
        """Initialize the checker.

        Args:
            template_text: Text of the empty template
            section_prefix: Prefix that marks a header line (a space is expected after it)
            required_marker: Substring that marks a header as required
        """
        self.section_prefix = section_prefix
        self.required_marker = required_marker
        self.template_text = template_text
        self.template = self.extract_sections(template_text)

    def clean_name(self, header_line: str) -> str:
        name = header_line[len(self.section_prefix) :]
        return name.replace(self.required_marker, "").strip().lower()

    def extract_sections(self, text: str) -> TemplateDocument:
        """Parse text into sections.

        Lines before the first header are dropped. When a header repeats, the
        later body replaces the earlier one but the section keeps its first
        position.
        """
        lines = (text or "").replace("\r\n", "\n").split("\n")
        header_start = self.section_prefix + " "

        order: list[str] = []
        headers: dict[str, str] = {}
        bodies: dict[str, list[str]] = {}
        current: str | None = None

        for line in lines:
            if line.startswith(header_start):
                current = self.clean_name(line)
                if current not in headers:
                    order.append(current)
                headers[current] = line
                bodies[current] = []
            elif current is not None:
                bodies[current].append(line)

        sections = tuple(
            TemplateSection(
                raw_header_line=headers[name],
                clean_name=name,
                required=self.required_marker in headers[name],
                body_lines=tuple(bodies[name]),
            )
            for name in order
        )
        return TemplateDocument(sections=sections, index={s.clean_name: s for s in sections})

    def matches_template_sections(self, text: str) -> SectionCheckResult:
        """Report template sections that are absent from the text."""
        candidate = self.extract_sections(text)
        names = tuple(self.template.names)
        missing = tuple(name for name in names if name not in candidate)
        return SectionCheckResult(all=names, invalid=missing)

    def get_required_sections_empty(self, text: str) -> SectionCheckResult:
        """Report required sections that are missing or were never edited."""
        candidate = self.extract_sections(text)
        required = self.template.required

        empty = []
        for section in required:
            other = candidate.get(section.clean_name)
            if other is None or words_equal(other.body, section.body):
                empty.append(section.clean_name)

        return SectionCheckResult(
            all=tuple(s.clean_name for s in required),
            invalid=tuple(empty),
        )

    def check(self, text: str, level: ValidationLevel = ValidationLevel.STRICT) -> TemplateCheckResult:
        """Validate text against the template.

        Missing sections fail regardless of level. Empty required sections
        fail when there are more of them than the level allows.
        """
        sections = self.matches_template_sections(text)
        if not sections.ok:
            log.debug("template_sections_missing", missing=sections.invalid)
            return TemplateCheckResult(
                kind=TemplateCheckKind.MISSING_SECTIONS,
                missing_sections=sections.invalid,
            )

        if level == ValidationLevel.NONE:
            return TemplateCheckResult()

        required = self.get_required_sections_empty(text)
        allowed = level.max_empty_sections(len(required.all))
        if len(required.invalid) > allowed:
            log.debug(
                "template_required_sections_empty",
                empty=required.invalid,
                allowed=allowed,
                level=str(level),
            )
            return TemplateCheckResult(
                kind=TemplateCheckKind.EMPTY_REQUIRED_SECTIONS,
                empty_sections=required.invalid,
            )

        return TemplateCheckResult(empty_sections=required.invalid)
