from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    WORD = "word"
    WHITESPACE = "whitespace"
    CITATION = "citation"


@dataclass(frozen=True, slots=True)
class PlaybackToken:
    kind: TokenKind
    text: str

    @classmethod
    def word(cls, text: str) -> PlaybackToken:
        return cls(TokenKind.WORD, text)

    @classmethod
    def whitespace(cls, text: str) -> PlaybackToken:
        return cls(TokenKind.WHITESPACE, text)

    @classmethod
    def citation(cls, text: str) -> PlaybackToken:
        return cls(TokenKind.CITATION, text)


def segment(text: str) -> list[PlaybackToken]:
    """Split text into words, whitespace runs and citation markers.

    A bracketed run such as ``[3]`` is one atomic token, and adjacent runs
    like ``[1][2]`` become consecutive tokens. A ``[`` with no closing
    bracket is ordinary text. Joining the token texts gives back ``text``.
    """
    tokens: list[PlaybackToken] = []
    word: list[str] = []

    def flush_word() -> None:
        if word:
            tokens.append(PlaybackToken.word("".join(word)))
            word.clear()

    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char == "[":
            close = text.find("]", i + 1)
            if close < 0:
                word.append(char)
                i += 1
                continue
            flush_word()
            tokens.append(PlaybackToken.citation(text[i : close + 1]))
            i = close + 1
            while i < n and text[i] == "[":
                close = text.find("]", i + 1)
                if close < 0:
                    break
                tokens.append(PlaybackToken.citation(text[i : close + 1]))
                i = close + 1
        elif char.isspace():
            flush_word()
            if tokens and tokens[-1].kind is TokenKind.WHITESPACE:
                tokens[-1] = PlaybackToken.whitespace(tokens[-1].text + char)
            else:
                tokens.append(PlaybackToken.whitespace(char))
            i += 1
        else:
            word.append(char)
            i += 1

    flush_word()
    return tokens
