"""Subtitle label → ISO 639-1 language code."""
from __future__ import annotations
import re
from typing import Optional

from babelfish import Language, LanguageConvertError, LanguageReverseError

# "English - SDH", "Portuguese (Brazil)", "Spanish [CC]"
_QUALIFIER_RE = re.compile(r"\s*[-(\[].*$")


def label_to_language_code(label: str) -> Optional[str]:
    """Map a human readable language label to its two-letter code, if known."""
    if not label:
        return None
    for candidate in (label.strip(), _QUALIFIER_RE.sub("", label.strip())):
        if not candidate:
            continue
        try:
            return Language.fromname(candidate.title()).alpha2
        except (LanguageReverseError, LanguageConvertError, ValueError):
            continue
    return None


def caption_language(language_code: Optional[str], label: str) -> str:
    """Explicit code first, then the label lookup, then the raw label."""
    if language_code:
        return language_code
    return label_to_language_code(label) or label
