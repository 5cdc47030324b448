"""Text normalization shared by parsing, matching and synonym learning."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

# Simplified→traditional map for characters that commonly show up in
# bookkeeping messages. Applied to user input and to comparison keys alike.
_HAN_VARIANTS: dict[str, str] = {
    "发": "發",
    "东": "東",
    "华": "華",
    "车": "車",
    "图": "圖",
    "买": "買",
    "卖": "賣",
    "钱": "錢",
    "饭": "飯",
    "面": "麵",
}
_HAN_TRANSLATION = str.maketrans(_HAN_VARIANTS)
# Full-width digits/minus to ASCII, plus the character map above.
_INPUT_TRANSLATION = str.maketrans(
    {
        **{chr(0xFF10 + i): str(i) for i in range(10)},
        "－": "-",
        **_HAN_VARIANTS,
    }
)

_SYNONYM_SPLIT_RE = re.compile(r"[,，]")


def normalize_input(text: str) -> str:
    """Map full-width digits and a few simplified characters before parsing."""

    return text.translate(_INPUT_TRANSLATION)


def normalize_term(value: str) -> str:
    """Return the comparison key for a subject name, synonym or user term.

    NFKC, simplified→traditional character map, trim, collapse internal
    whitespace, then ``casefold``. Catalog strings and user terms share the
    key, so ``面紙`` in a catalog still matches input that became ``麵紙``.
    """

    s = unicodedata.normalize("NFKC", value).translate(_HAN_TRANSLATION)
    return " ".join(s.strip().split()).casefold()


def split_synonyms(raw: str | Iterable[str] | None) -> tuple[str, ...]:
    """Split a comma-joined synonym field into unique trimmed entries.

    Accepts the stored comma-joined string or an iterable of strings. The
    first spelling of each normalized key wins; order is preserved.
    """

    if raw is None:
        return ()
    parts: Iterable[str] = _SYNONYM_SPLIT_RE.split(raw) if isinstance(raw, str) else raw
    seen: set[str] = set()
    out: list[str] = []
    for part in parts:
        item = " ".join(str(part).split())
        key = normalize_term(item)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(item)
    return tuple(out)


def join_synonyms(items: Iterable[str]) -> str:
    return ",".join(split_synonyms(list(items)))


__all__ = [
    "join_synonyms",
    "normalize_input",
    "normalize_term",
    "split_synonyms",
]
