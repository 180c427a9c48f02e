"""
Glossary helpers: slug generation, lookup and merge.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models import Term

_NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')
MAX_SLUG_LENGTH = 60


def slugify_term_id(text: str) -> str:
    """Turn text into a kebab-case term slug.

    >>> slugify_term_id("Argo Trading!")
    'argo-trading'
    """
    slug = _NON_ALNUM_RE.sub('-', text.lower()).strip('-')
    return slug[:MAX_SLUG_LENGTH]


def unique_term_slug(base: str, existing: Iterable[str]) -> str:
    """Return base, or the first free ``base-2``, ``base-3``, ..."""
    taken: Set[str] = existing if isinstance(existing, set) else set(existing)
    if base not in taken:
        return base
    counter = 2
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"


def lookup_term(terms: List[Term], query: str) -> Dict[str, Any]:
    """Find a glossary entry by slug or original text.

    Exact slug, then exact original text, then a case-insensitive substring
    match on either. Never raises: a miss returns ``{"notFound": True}``.
    """
    for term in terms:
        if term.slug == query or term.original_text == query:
            return term.to_dict()

    lower_query = query.lower()
    for term in terms:
        if lower_query in term.slug or lower_query in term.original_text.lower():
            return term.to_dict()

    return {"notFound": True, "query": query}


@dataclass
class TermUpdate:
    existing_id: str
    original_text: str
    translation: str
    comment: Optional[str] = None


@dataclass
class TermMerge:
    """Outcome of merging newly discovered terms into a glossary"""
    to_insert: List[Term] = field(default_factory=list)
    to_update: List[TermUpdate] = field(default_factory=list)


def compute_term_merge(existing: Iterable[Term], new_terms: Iterable[Term]) -> TermMerge:
    """Split new terms into inserts and updates, matching on slug.

    Existing terms absent from ``new_terms`` are kept.
    """
    slug_to_id = {term.slug: term.id for term in existing}
    merge = TermMerge()
    for term in new_terms:
        existing_id = slug_to_id.get(term.slug)
        if existing_id:
            merge.to_update.append(TermUpdate(
                existing_id=existing_id,
                original_text=term.original_text,
                translation=term.translation,
                comment=term.comment,
            ))
        else:
            merge.to_insert.append(term)
    return merge


def apply_term_merge(existing: List[Term], merge: TermMerge) -> List[Term]:
    """Return the glossary that results from applying a merge."""
    updates = {u.existing_id: u for u in merge.to_update}
    merged = []
    for term in existing:
        update = updates.get(term.id)
        if update:
            term = Term(id=term.id, slug=term.slug, original_text=update.original_text,
                        translation=update.translation, comment=update.comment)
        merged.append(term)
    merged.extend(merge.to_insert)
    return merged
