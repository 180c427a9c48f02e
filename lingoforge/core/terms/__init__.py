"""
Terminology and context tools.
"""

from .templates import (
    TERM_TEMPLATE_RE,
    Literal,
    Placeholder,
    parse_template,
    render_template,
    resolve_term_templates,
    build_term_index,
    referenced_slugs,
)
from .term_tools import (
    slugify_term_id,
    unique_term_slug,
    lookup_term,
    compute_term_merge,
    apply_term_merge,
    TermMerge,
    TermUpdate,
)
from .context_tools import lookup_prev_lines, lookup_next_lines, search_entries
from .toolkit import ToolRegistry, TOOL_DEFINITIONS

__all__ = [
    'TERM_TEMPLATE_RE',
    'Literal',
    'Placeholder',
    'parse_template',
    'render_template',
    'resolve_term_templates',
    'build_term_index',
    'referenced_slugs',
    'slugify_term_id',
    'unique_term_slug',
    'lookup_term',
    'compute_term_merge',
    'apply_term_merge',
    'TermMerge',
    'TermUpdate',
    'lookup_prev_lines',
    'lookup_next_lines',
    'search_entries',
    'ToolRegistry',
    'TOOL_DEFINITIONS',
]
