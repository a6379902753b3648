"""
Tokenizer adapter.

Splits raw text into (word, char_offset) pairs using spaCy's rule-based
tokenizer. Whitespace tokens are dropped, so offsets are the only link
back to the original text.
"""

from typing import List, Tuple

import spacy


class SpacyTokenizer:
    """Wraps ``spacy.blank(lang).tokenizer``; no trained pipeline needed."""

    def __init__(self, lang: str = "en") -> None:
        self.lang = lang
        self._tokenizer = spacy.blank(lang).tokenizer

    def __call__(self, text: str) -> List[Tuple[str, int]]:
        return [(tok.text, tok.idx) for tok in self._tokenizer(text) if not tok.is_space]

    def __getstate__(self):
        return {"lang": self.lang}

    def __setstate__(self, state):
        self.__init__(state["lang"])

    def __repr__(self) -> str:
        return f"SpacyTokenizer(lang={self.lang!r})"
