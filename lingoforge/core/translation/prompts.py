"""
Prompts for the terminology scan, batch translation and project chat.

Both builders return a PromptPair; the wording adapts to the kind of
content being translated (``format_context``).
"""

from typing import List, NamedTuple, Optional

from ..models import EntryWithResource, Term, TranslationProject

SUBTITLE = "subtitle"
PO_LOCALIZATION = "po-localization"
DOCUMENT = "document"
HTML = "html"

TEMPLATE_FORMAT = "${{term-id}}"
EXAMPLE_TEMPLATE = "${{argo-trading}}"


class PromptPair(NamedTuple):
    """A pair of system and user prompts for LLM translation."""
    system: str
    user: str


# ============================================================================
# SHARED PROMPT SECTIONS
# ============================================================================

def _domain_context(format_context: Optional[str]) -> str:
    return {
        SUBTITLE: "subtitle translation",
        DOCUMENT: "document translation",
        HTML: "HTML content translation",
    }.get(format_context, "software localization")


def _scan_focus(format_context: Optional[str]) -> str:
    if format_context == SUBTITLE:
        return "- Character names and recurring phrases\n- Location names mentioned in dialogue"
    if format_context == DOCUMENT:
        return "- Domain-specific terminology\n- Recurring phrases and key concepts"
    return "- UI element names appearing in multiple strings"


_TEMPLATE_RULE = (
    f"1. For recognized terminology, use the template format {TEMPLATE_FORMAT} instead of translating directly.\n"
    f"   Example: if \"Argo Trading\" has ID \"argo-trading\", translate \"About Argo Trading\" "
    f"as \"关于 {EXAMPLE_TEMPLATE}\"."
)

_FORMAT_RULES = {
    SUBTITLE: (
        "You are a professional subtitle translator.",
        [
            "Keep translations concise: subtitles must be readable within the cue's time window.",
            "Preserve line breaks within cues when present.",
            "Maintain the tone and register of spoken dialogue.",
            "Use lookup tools if you need context about surrounding subtitle cues.",
        ],
    ),
    PO_LOCALIZATION: (
        "You are a professional translator for software and website localization.",
        [
            "Preserve printf-style format specifiers exactly: %s, %d, %f, %ld, %1$s, %2$d, %%, etc.",
            "Preserve Python-style format specifiers: {0}, {name}, %(name)s, etc.",
            "Preserve markdown formatting (**bold**, etc.).",
            "Use lookup tools if you need context about surrounding strings.",
            "Keep translations natural and appropriate for app/website UI.",
            "For strings that are only format specifiers or symbols, keep them as-is.",
            "Preserve literal \\n newline sequences in translations.",
        ],
    ),
    DOCUMENT: (
        "You are a professional document translator.",
        [
            "Preserve markdown formatting (headings, bold, italic, links, code spans) exactly as-is.",
            "Preserve paragraph structure: do not merge or split paragraphs.",
            "Maintain the tone, register, and style of the original document.",
            "Use lookup tools if you need context about surrounding paragraphs.",
        ],
    ),
    HTML: (
        "You are a professional HTML content translator.",
        [
            "Preserve all HTML tags and their attributes exactly as-is. Only translate the text content.",
            "For inline elements like <b>, <i>, <em>, <a>, <span>, keep the tags intact "
            "and translate text within them.",
            "Preserve HTML entities (e.g., &amp;, &nbsp;) unless they represent translatable content.",
            "Do not add or remove HTML tags.",
            "Use lookup tools if you need context about surrounding content blocks.",
        ],
    ),
}

_DEFAULT_RULES = (
    "You are a professional translator for software localization.",
    [
        "Preserve format specifiers exactly: %@, %lld, %1$@, %2$@, %%, etc.",
        "Preserve markdown formatting (**bold**, etc.).",
        "Use lookup tools if you need context about surrounding strings.",
        "Keep translations natural and appropriate for a mobile/desktop app UI.",
        "For strings that are only format specifiers or symbols (like \"%@\", \"|\", \"•\"), keep them as-is.",
    ],
)


# ============================================================================
# TERMINOLOGY SCAN
# ============================================================================

def generate_scan_prompt(entries: List[EntryWithResource], source_language: str, target_language: str,
                         format_context: Optional[str] = None) -> PromptPair:
    """Prompt asking for a JSON array of terms that need consistent translation."""
    source_texts = "\n".join(
        f"{i + 1}. {text}"
        for i, text in enumerate(e.source_text for e in entries if e.source_text.strip())
    )

    system_prompt = f"""You are a terminology extraction specialist for {_domain_context(format_context)}.
Source language: {source_language}
Target language: {target_language}

Analyze the source texts and identify terms that need consistent translation:
- Brand names and product names
- Technical terms specific to this domain
{_scan_focus(format_context)}
- Proper nouns and abbreviations

For each term, provide a kebab-case ID, the original text, a recommended translation, and a brief comment.
Only extract terms that appear in multiple strings or are critical for consistency.

Respond with a JSON array only, no other text:
[{{"id": "argo-trading", "originalText": "Argo Trading", "translation": "...", "comment": "..."}}]
Return [] when there are no such terms."""

    user_prompt = f"Extract terminology from these source texts:\n\n{source_texts}"
    return PromptPair(system=system_prompt.strip(), user=user_prompt.strip())


# ============================================================================
# BATCH TRANSLATION
# ============================================================================

def format_term_list(terms: List[Term]) -> str:
    return "\n".join(
        "- ${{" + t.slug + "}} = \"" + t.original_text + "\" → \"" + t.translation + "\""
        for t in terms
    )


def format_entry_list(batch: List[EntryWithResource], global_offset: int) -> str:
    lines = []
    for i, entry in enumerate(batch):
        line = f'[{global_offset + i}] id="{entry.id}" source="{entry.source_text}"'
        if entry.comment:
            line += f' note="{entry.comment}"'
        lines.append(line)
    return "\n".join(lines)


def generate_batch_prompt(batch: List[EntryWithResource], global_offset: int, terms: List[Term],
                          source_language: str, target_language: str,
                          format_context: Optional[str] = None) -> PromptPair:
    """
    Prompt for one batch of entries.

    Args:
        batch: Entries of this batch
        global_offset: Position of the first entry in the full list (the
            ``[n]`` numbers match the indices the lookup tools take)
        terms: Glossary available as ``${{slug}}`` templates
        source_language: Source language
        target_language: Target language
        format_context: subtitle, po-localization, document, html or None

    Returns:
        PromptPair: A named tuple with 'system' and 'user' prompts
    """
    system_role, rules = _FORMAT_RULES.get(format_context, _DEFAULT_RULES)
    numbered_rules = "\n".join([_TEMPLATE_RULE] + [f"{n}. {rule}" for n, rule in enumerate(rules, start=2)])

    system_prompt = f"""{system_role}

Source language: {source_language}
Target language: {target_language}

RULES:
{numbered_rules}

Available terms:
{format_term_list(terms) or "(none)"}

After using any tools for context, output your translations as a JSON object with this exact structure:
{{"translations": [{{"id": "entry-id", "targetText": "translated text"}}, ...]}}

You MUST include all entries in the output. Use the exact entry IDs as given."""

    user_prompt = f"Translate these entries:\n\n{format_entry_list(batch, global_offset)}"
    return PromptPair(system=system_prompt.strip(), user=user_prompt.strip())


# ============================================================================
# PROJECT CHAT
# ============================================================================

def format_resource_summaries(project: TranslationProject) -> str:
    lines = []
    for resource in project.resources:
        translated = sum(1 for e in resource.entries if e.target_text.strip())
        lines.append(f"- {resource.id} ({resource.label}): {translated}/{len(resource.entries)} translated")
    return "\n".join(lines)


def generate_chat_system_prompt(project: TranslationProject, source_language: str, target_language: str) -> str:
    """System prompt of the project editing assistant; the user's messages follow it."""
    return f"""You are a translation editing assistant for a localization project.

Source language: {source_language}
Target language: {target_language}

Project resources:
{format_resource_summaries(project) or "(none)"}

You can:
1. Search for translation entries by source or target text
2. Get the details of a specific entry
3. Update translations for specific entries
4. List all resources in the project
5. Summarize the overall translation progress
6. Look up glossary terms and the entries around a position

When updating translations:
- Preserve format specifiers: %@, %lld, %1$@, %2$@, %s, %d, {{0}}, %%
- Keep ${{{{term-id}}}} glossary references and markup intact
- Be natural and contextually appropriate for the content

Always explain what you're doing and confirm changes with the user."""
