"""
draft_categories.py
===================
Disable the categories on a draft so it does not show up in content
categories while it is still being written (WP:DRAFTNOCAT / WP:USERNOCAT).

    [[Category:Foo]]           ->  [[:Category:Foo]]
    [[Category:Draft ...]]     ->  unchanged
    [[Category:... drafts]]    ->  unchanged
    {{Draft categories|...}}   ->  unchanged (first one only)
"""

import re

# {{Draft categories|...}} lists the categories the draft will get once
# accepted. Its payload is simple (no nested braces).
DRAFT_CATEGORIES_RE = re.compile(r"\{\{Draft categories\|[^{}]+\}\}", re.IGNORECASE)

# A live category link, unless it is a draft-tracking category.
LIVE_CATEGORY_RE = re.compile(r"(\[\[)(Category:)(?!(?:Draft|[^\]\r\n]*?drafts\]\]))", re.IGNORECASE)

# Stands in for the {{Draft categories}} block while the links are rewritten.
# MediaWiki strips NUL from saved text, so a page can never contain it.
PLACEHOLDER = "\x00DRAFT-CATEGORIES\x00"


def _neutralize(text):
    """Swap the first {{Draft categories}} block for PLACEHOLDER.

    Returns (neutralized_text, block); block is None when there is none,
    and the text comes back untouched.
    """
    m = DRAFT_CATEGORIES_RE.search(text)
    if m is None:
        return text, None
    return text[:m.start()] + PLACEHOLDER + text[m.end():], m.group(0)


def suppress_categories(text):
    """Turn live [[Category:...]] links into [[:Category:...]] links.

    Categories inside the first {{Draft categories|...}} block are left
    alone, as are Draft* categories and categories ending in "drafts".
    """
    neutralized, block = _neutralize(text)
    new_text = LIVE_CATEGORY_RE.sub(r"\1:\2", neutralized)
    if block is None:
        return new_text
    return new_text.replace(PLACEHOLDER, block, 1)


def count_live_categories(text):
    """Number of category links suppress_categories() would disable."""
    neutralized, _ = _neutralize(text)
    return len(LIVE_CATEGORY_RE.findall(neutralized))
