"""
Text Cleaning for Speech Input.

LLM and chat front-ends send markdown, links and emoji that read badly
when spoken. ``clean_text`` strips them before segmentation.

Cleaning Steps (each switchable through CleaningOptions):
    1. URLs              http(s)://... removed
    2. Markdown          images removed, links reduced to their label,
                         bold/italic/code markers and headings stripped
    3. Custom keywords   comma-separated literals removed verbatim
    4. Emoji             pictographic codepoints removed
    5. Citation numbers  " 12." style footnote markers removed
    6. Line breaks       whitespace runs collapsed to one space
    7. Final trim (always)

Step 6 collapses whitespace instead of deleting it. Dropping every line
break, as the Edge read-aloud worker this gateway replaces did, suits CJK
input but glues Latin words together ("end\\nNext" -> "endNext").

Example:
    >>> clean_text("**Hello** [docs](guide.md) 🙂 world 3.")
    'Hello docs world.'
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from tts_gateway.core.logging import debug, get_logger

_LOG = get_logger("tts-gateway.text")


@dataclass(frozen=True)
class CleaningOptions:
    """Cleaning switches. All steps are on by default."""
    remove_markdown: bool = True
    remove_emoji: bool = True
    remove_urls: bool = True
    remove_line_breaks: bool = True
    remove_citation_numbers: bool = True
    custom_keywords: str = ""

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Any]] = None) -> "CleaningOptions":
        """Defaults merged with a partial mapping; unknown keys are ignored."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {k: v for k, v in overrides.items() if k in known and v is not None}
        return cls(**values)

    def keywords(self) -> list[str]:
        return [k.strip() for k in self.custom_keywords.split(",") if k.strip()]


_URL_RE = re.compile(r"https?://\S+")

# Order matters: images before links, bold before italic
_MD_RULES = (
    (re.compile(r"!\[.*?\]\(.*?\)"), ""),
    (re.compile(r"\[(.*?)\]\(.*?\)"), r"\1"),
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"`{1,3}(.*?)`{1,3}"), r"\1"),
    (re.compile(r"#{1,6}\s"), ""),
)

_EMOJI_RE = re.compile(
    "["
    "\U0001F000-\U0001FAFF"  # mahjong .. symbols & pictographs extended-A
    "\U00002600-\U000027BF"  # misc symbols, dingbats
    "\U0001F1E6-\U0001F1FF"  # regional indicators
    "\U00002B00-\U00002BFF"  # arrows, stars
    "\U0000FE0F"             # variation selector-16
    "\U0000200D"             # zero-width joiner
    "]+"
)

_CITATION_RE = re.compile(r"\s\d{1,2}(?=[.。，,;；:：]|$)")

_WS_RE = re.compile(r"\s+")


def strip_markdown(text: str) -> str:
    for pattern, repl in _MD_RULES:
        text = pattern.sub(repl, text)
    return text


def remove_keywords(text: str, keywords: list[str]) -> str:
    if not keywords:
        return text
    pattern = re.compile("|".join(re.escape(k) for k in keywords))
    return pattern.sub("", text)


def clean_text(text: str, options: Optional[CleaningOptions] = None) -> str:
    """
    Apply the enabled cleaning steps and trim the result.

    Args:
        text: Raw request input.
        options: Cleaning switches (defaults: everything on).

    Returns:
        Cleaned text; may be empty.
    """
    opts = options or CleaningOptions()
    out = text

    if opts.remove_urls:
        out = _URL_RE.sub("", out)
    if opts.remove_markdown:
        out = strip_markdown(out)
    out = remove_keywords(out, opts.keywords())
    if opts.remove_emoji:
        out = _EMOJI_RE.sub("", out)
    if opts.remove_citation_numbers:
        out = _CITATION_RE.sub("", out)
    if opts.remove_line_breaks:
        out = _WS_RE.sub(" ", out)

    out = out.strip()
    debug(_LOG, "text_cleaned", chars_in=len(text), chars_out=len(out))
    return out
