"""
Unpacker for Dean Edwards' p,a,c,k,e,d JavaScript packer.

Embed hosts wrap their player setup in
  eval(function(p,a,c,k,e,d){...}('payload',radix,count,'sym|tab'.split('|')))
Unpacking it lets the embed scrapers regex out the stream URL.
"""
from __future__ import annotations
import re

_PACKED_RE = re.compile(
    r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?\}\('(.*?)',(\d+),(\d+),'(.*?)'\.split\('\|'\)",
    re.DOTALL,
)
_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def detect(text: str) -> bool:
    return bool(_PACKED_RE.search(text))


def unpack(text: str) -> str:
    """Return the unpacked script, or the input unchanged when nothing is packed."""
    match = _PACKED_RE.search(text)
    if not match:
        return text

    payload, radix, count, table = match.groups()
    radix = int(radix)
    symbols = table.split("|")
    symbols += [""] * (int(count) - len(symbols))

    def _lookup(m: re.Match) -> str:
        word = m.group(0)
        try:
            index = _decode(word, radix)
        except ValueError:
            return word
        if index < len(symbols) and symbols[index]:
            return symbols[index]
        return word

    return re.sub(r"\b\w+\b", _lookup, payload)


def _decode(word: str, radix: int) -> int:
    value = 0
    for ch in word:
        digit = _ALPHABET.find(ch)
        if digit < 0 or digit >= radix:
            raise ValueError(word)
        value = value * radix + digit
    return value
