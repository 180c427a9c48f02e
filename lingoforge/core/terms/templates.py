"""
Glossary placeholders inside translations.

Stored translations keep ``${{slug}}`` references; they are resolved only
when a value is rendered or exported, so that editing a term later changes
every entry that refers to it.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..models import Term

TERM_TEMPLATE_RE = re.compile(r'\$\{\{([a-z0-9-]+)\}\}')


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    """Unresolved reference to a glossary term"""
    slug: str

    @property
    def raw(self) -> str:
        return "${{" + self.slug + "}}"


TemplateRun = Union[Literal, Placeholder]


def parse_template(text: str) -> List[TemplateRun]:
    """Split text into literal and placeholder runs, in order."""
    runs: List[TemplateRun] = []
    pos = 0
    for match in TERM_TEMPLATE_RE.finditer(text):
        if match.start() > pos:
            runs.append(Literal(text[pos:match.start()]))
        runs.append(Placeholder(match.group(1)))
        pos = match.end()
    if pos < len(text):
        runs.append(Literal(text[pos:]))
    return runs


def build_term_index(terms: Optional[Iterable[Term]]) -> Dict[str, Term]:
    return {term.slug: term for term in terms or []}


def render_template(runs: List[TemplateRun], terms_by_slug: Mapping[str, Term]) -> str:
    """Render runs; unknown slugs and empty translations stay visible verbatim."""
    parts = []
    for run in runs:
        if isinstance(run, Literal):
            parts.append(run.text)
            continue
        term = terms_by_slug.get(run.slug)
        parts.append(term.translation if term and term.translation else run.raw)
    return "".join(parts)


def resolve_term_templates(text: str, terms: Union[Mapping[str, Term], Iterable[Term], None]) -> str:
    """Substitute every ``${{slug}}`` in text with its glossary translation."""
    if not text or "${{" not in text:
        return text
    index = terms if isinstance(terms, Mapping) else build_term_index(terms)
    return render_template(parse_template(text), index)


def referenced_slugs(text: str) -> List[str]:
    return [run.slug for run in parse_template(text) if isinstance(run, Placeholder)]
