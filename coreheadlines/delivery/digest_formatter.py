"""
Digest Formatter
================

HTML rendering for the headline digest.

Features:
- One monospace paragraph per article, linking to the article
- A single HTML document joining snippets with dashed separators
- Optional preamble (the economic indicator block) ahead of the headlines
"""

import html
from typing import List, Optional

from ..database.models import Article


DIGEST_TITLE = "Core Headlines Update"

SEPARATOR = '<hr style="border:none;border-top:2px dashed #ccc;margin:12px 0;">'

SNIPPET_TEMPLATE = (
    '<p style="font-family:monospace; font-size:18px; margin:0;">'
    '<a href="{link}" style="color:#000000; text-decoration:none;">{display}</a></p>'
)

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
  </head>
  <body>{body}</body>
</html>"""


def format_snippet(article: Article) -> str:
    """Render one article as a linked headline.

    Returns an empty string for an article without a title; the pipeline
    never delivers such a snippet.
    """
    if not article.title.strip():
        return ""

    title = html.escape(article.title).strip()
    link = html.escape(article.link).strip()

    parts = []
    if article.header:
        parts.append(f"{article.header}:")
    parts.append(title)

    return SNIPPET_TEMPLATE.format(link=link, display=" ".join(parts))


def build_digest_html(snippets: List[str], preamble: Optional[str] = None) -> str:
    """Assemble the full digest document.

    Args:
        snippets: Rendered headlines in delivery order
        preamble: Pre-rendered block placed before the headlines

    Returns:
        Complete HTML document
    """
    body = ""
    if preamble:
        body += SEPARATOR + preamble

    body += SEPARATOR + SEPARATOR.join(snippets) + SEPARATOR

    return DOCUMENT_TEMPLATE.format(title=DIGEST_TITLE, body=body)
