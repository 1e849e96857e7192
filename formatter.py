"""
Chat text formatter: turns model replies into display blocks.

Only literal markers are recognised:
  - lines starting with "* " or "- " become bullets
  - lines ending with ":" become headings
  - blank lines become spacers
  - **...** spans inside any line become bold
Everything else is a plain paragraph.
"""

from __future__ import annotations

import re

from markupsafe import Markup, escape

_MATH_SYMBOLS = (
    ("^2", "²"),
    ("^3", "³"),
    ("\\int", "∫"),
    ("\\theta", "θ"),
    ("\\pi", "π"),
    ("\\alpha", "α"),
    ("\\beta", "β"),
    ("\\lambda", "λ"),
    ("\\Delta", "Δ"),
    ("\\infty", "∞"),
    ("\\approx", "≈"),
    ("\\neq", "≠"),
    ("sqrt", "√"),
    ("->", "→"),
)

_BOLD = re.compile(r"(\*\*.*?\*\*)")


def format_math_symbols(text: str) -> str:
    if not text:
        return ""
    for token, symbol in _MATH_SYMBOLS:
        text = text.replace(token, symbol)
    return text


def inline_spans(text: str) -> list[dict]:
    spans = []
    for part in _BOLD.split(text):
        if not part:
            continue
        if len(part) >= 4 and part.startswith("**") and part.endswith("**"):
            spans.append({"text": part[2:-2], "bold": True})
        else:
            spans.append({"text": part, "bold": False})
    return spans


def format_blocks(text: str) -> list[dict]:
    """Split a reply into typed blocks: bullet, heading, spacer, paragraph."""
    if not text:
        return []
    blocks = []
    for line in format_math_symbols(text).split("\n"):
        stripped = line.strip()
        if stripped.startswith("* ") or stripped.startswith("- "):
            blocks.append({"type": "bullet", "spans": inline_spans(stripped[2:])})
        elif stripped.endswith(":"):
            blocks.append({"type": "heading", "spans": inline_spans(line)})
        elif not stripped:
            blocks.append({"type": "spacer", "spans": []})
        else:
            blocks.append({"type": "paragraph", "spans": inline_spans(line)})
    return blocks


def _render_spans(spans: list[dict]) -> str:
    out = []
    for span in spans:
        if span["bold"]:
            out.append(f"<strong>{escape(span['text'])}</strong>")
        else:
            out.append(str(escape(span["text"])))
    return "".join(out)


_BLOCK_TAGS = {
    "bullet": '<div class="bullet">&bull; {}</div>',
    "heading": "<h4>{}</h4>",
    "spacer": '<div class="spacer"></div>',
    "paragraph": "<p>{}</p>",
}


def render_html(text: str) -> Markup:
    """Escaped HTML for a reply, safe to drop into a template."""
    parts = [
        _BLOCK_TAGS[block["type"]].format(_render_spans(block["spans"]))
        for block in format_blocks(text)
    ]
    return Markup("\n".join(parts))
