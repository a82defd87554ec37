"""Lightweight SQL tokenizer for completion.

Not a lexer for execution: it only needs to be good enough to find keywords,
identifiers and punctuation in front of the cursor. Every token keeps its
exact source span, so ``buffer[token.start:token.end] == token.text``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto


class TokenKind(Enum):
    """Kinds of tokens produced by :func:`tokenize`."""

    WORD = auto()
    OPERATOR = auto()
    STRING_LITERAL = auto()
    PUNCTUATION = auto()
    COMMENT = auto()


@dataclass(frozen=True)
class Token:
    """A token and its span in the buffer."""

    text: str
    kind: TokenKind
    start: int
    end: int
    value: str = ""  # text with backtick quoting removed, for matching
    quoted: bool = False  # backtick-quoted identifier
    terminated: bool = True  # closing quote / comment end present

    @property
    def upper(self) -> str:
        """Keyword form of the token; quoted identifiers never match keywords."""
        if self.quoted or self.kind not in (TokenKind.WORD, TokenKind.OPERATOR):
            return ""
        return self.value.upper()

    @property
    def is_word_like(self) -> bool:
        """Whether the token can be the partial token under the cursor."""
        if self.kind is TokenKind.WORD:
            return self.text != "*"
        return self.kind is TokenKind.OPERATOR and self.text.isalpha()

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCTUATION and self.text == char


PUNCTUATION = frozenset("(),;.")
WORD_OPERATORS = frozenset({"AND", "OR", "NOT"})
# Longest first so "<=>" wins over "<=" and "<"
SYMBOL_OPERATORS = ("<=>", "<=", ">=", "<>", "!=", "||", "&&", ":=", "=", "<", ">")
OPERATOR_CHARS = frozenset("=<>!+-/%^&|~:?")


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char in "_$@"


class TokenStream:
    """Lazy, restartable token sequence over ``buffer[0:cursor]``.

    Each iteration re-scans the text from the start, so the stream can be
    consumed any number of times with identical results.
    """

    def __init__(self, buffer: str, cursor: int | None = None):
        if cursor is None:
            cursor = len(buffer)
        self._text = buffer[: max(0, min(cursor, len(buffer)))]

    @property
    def text(self) -> str:
        return self._text

    def __iter__(self) -> Iterator[Token]:
        return _scan(self._text)

    def __repr__(self) -> str:
        return f"TokenStream({self._text!r})"


def tokenize(buffer: str, cursor: int | None = None) -> TokenStream:
    """Tokenize ``buffer`` up to ``cursor`` (the whole buffer when omitted).

    Args:
        buffer: Full line buffer
        cursor: Cursor offset; text after it is ignored

    Returns:
        A lazy, restartable sequence of :class:`Token`
    """
    return TokenStream(buffer, cursor)


def _scan(text: str) -> Iterator[Token]:
    i = 0
    n = len(text)
    while i < n:
        char = text[i]

        if char.isspace():
            i += 1
            continue

        if (char == "-" and text.startswith("--", i)) or char == "#":
            end = text.find("\n", i)
            end = n if end == -1 else end
            yield Token(text[i:end], TokenKind.COMMENT, i, end, terminated=end < n)
            i = end
            continue

        if char == "/" and text.startswith("/*", i):
            close = text.find("*/", i + 2)
            end = n if close == -1 else close + 2
            yield Token(text[i:end], TokenKind.COMMENT, i, end, terminated=close != -1)
            i = end
            continue

        if char in PUNCTUATION:
            yield Token(char, TokenKind.PUNCTUATION, i, i + 1, value=char)
            i += 1
            continue

        if char in "'\"":
            end, terminated = _scan_string(text, i, char)
            yield Token(text[i:end], TokenKind.STRING_LITERAL, i, end, terminated=terminated)
            i = end
            continue

        if char == "`":
            end, terminated = _scan_backtick(text, i)
            raw = text[i:end]
            inner = raw[1:-1] if terminated else raw[1:]
            yield Token(
                raw,
                TokenKind.WORD,
                i,
                end,
                value=inner.replace("``", "`"),
                quoted=True,
                terminated=terminated,
            )
            i = end
            continue

        if char == "*":
            yield Token("*", TokenKind.WORD, i, i + 1, value="*")
            i += 1
            continue

        if char in OPERATOR_CHARS:
            op = next((s for s in SYMBOL_OPERATORS if text.startswith(s, i)), char)
            yield Token(op, TokenKind.OPERATOR, i, i + len(op), value=op)
            i += len(op)
            continue

        if _is_word_char(char):
            end = i + 1
            while end < n and _is_word_char(text[end]):
                end += 1
            word = text[i:end]
            kind = TokenKind.OPERATOR if word.upper() in WORD_OPERATORS else TokenKind.WORD
            yield Token(word, kind, i, end, value=word)
            i = end
            continue

        # Anything else (stray brackets, braces, non-printing characters) stands alone
        yield Token(char, TokenKind.OPERATOR, i, i + 1, value=char)
        i += 1


def _scan_string(text: str, start: int, quote: str) -> tuple[int, bool]:
    """Return (end, terminated) for a quoted literal starting at ``start``."""
    i = start + 1
    n = len(text)
    while i < n:
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            if i + 1 < n and text[i + 1] == quote:
                i += 2
                continue
            return i + 1, True
        i += 1
    return n, False


def _scan_backtick(text: str, start: int) -> tuple[int, bool]:
    i = start + 1
    n = len(text)
    while i < n:
        if text[i] == "`":
            if i + 1 < n and text[i + 1] == "`":
                i += 2
                continue
            return i + 1, True
        i += 1
    return n, False
