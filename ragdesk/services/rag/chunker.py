from typing import Callable, List, Optional, Tuple
import logging
import re

from pydantic import BaseModel

logger = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]


class TextChunk(BaseModel):
    text: str
    token_count: int


def tiktoken_counter(encoding_name: str = "cl100k_base") -> TokenCounter:
    """Token counter backed by tiktoken"""
    import tiktoken

    encoding = tiktoken.get_encoding(encoding_name)
    return lambda text: len(encoding.encode(text, disallowed_special=()))


def _split_sentences(text: str) -> List[str]:
    """Split text into sentences, treating blank lines as hard boundaries"""
    return [sentence for _, sentence in _sentence_segments(text)]


def _sentence_segments(text: str) -> List[Tuple[str, str]]:
    """
    Split text into (separator, sentence) pairs.

    The separator is the whitespace that joined the sentence to the previous
    one, reduced to a blank line, a newline or a space.
    """
    segments: List[Tuple[str, str]] = []
    for paragraph in re.split(r'\n\s*\n', text):
        parts = re.split(r'(?<=[.!?])(\s+)', paragraph)
        separator = "\n\n"
        for i, part in enumerate(parts):
            if i % 2:
                separator = "\n" if "\n" in part else " "
                continue
            sentence = part.strip()
            if sentence:
                segments.append((separator, sentence))
    return segments


class SentenceChunker:
    """
    Splits a text unit into overlapping, token-bounded chunks.

    Chunks are built from whole sentences where possible. Consecutive chunks
    share trailing pieces worth up to ``chunk_overlap`` tokens, so a fact
    that straddles a boundary survives intact in at least one chunk. Sentences
    longer than ``chunk_size`` are broken on line breaks first and words last;
    line breaks are kept, so CSV rows from spreadsheets stay one per line.
    """

    def __init__(
        self,
        chunk_size: int = 600,
        chunk_overlap: int = 100,
        token_counter: Optional[TokenCounter] = None,
    ):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._token_counter = token_counter

    @property
    def count_tokens(self) -> TokenCounter:
        if self._token_counter is None:
            self._token_counter = tiktoken_counter()
        return self._token_counter

    def _pieces(self, text: str) -> List[Tuple[str, str]]:
        """(separator, text) pieces, each within ``chunk_size`` unless a single word is larger"""
        pieces: List[Tuple[str, str]] = []
        for separator, sentence in _sentence_segments(text):
            if self.count_tokens(sentence) <= self.chunk_size:
                pieces.append((separator, sentence))
                continue
            lines = [line.strip() for line in sentence.split("\n") if line.strip()]
            for line in lines:
                if self.count_tokens(line) <= self.chunk_size:
                    pieces.append((separator, line))
                else:
                    words = line.split()
                    pieces.append((separator, words[0]))
                    pieces.extend((" ", word) for word in words[1:])
                separator = "\n"
        return pieces

    def split(self, text: str) -> List[TextChunk]:
        """
        Split one text unit into chunks.

        Args:
            text: The unit's text

        Returns:
            Ordered chunks; empty when the text is blank
        """
        pieces = self._pieces(text)
        if not pieces:
            return []

        counts = [self.count_tokens(piece) for _, piece in pieces]
        chunks: List[TextChunk] = []
        current: List[int] = []  # indexes into pieces
        current_tokens = 0

        for i, tokens in enumerate(counts):
            if current and current_tokens + tokens > self.chunk_size:
                chunks.append(self._make_chunk(pieces, current))

                # Carry trailing pieces into the next chunk as overlap
                carried: List[int] = []
                carried_tokens = 0
                for j in reversed(current):
                    if carried_tokens + counts[j] > self.chunk_overlap:
                        break
                    carried.insert(0, j)
                    carried_tokens += counts[j]
                while carried and carried_tokens + tokens > self.chunk_size:
                    carried_tokens -= counts[carried.pop(0)]

                current, current_tokens = carried, carried_tokens

            current.append(i)
            current_tokens += tokens

        # Never empty here: the last piece was just appended
        chunks.append(self._make_chunk(pieces, current))

        logger.debug(f"Split {len(pieces)} pieces into {len(chunks)} chunks")
        return chunks

    def _make_chunk(self, pieces: List[Tuple[str, str]], indexes: List[int]) -> TextChunk:
        text = pieces[indexes[0]][1] + "".join(pieces[i][0] + pieces[i][1] for i in indexes[1:])
        return TextChunk(text=text, token_count=self.count_tokens(text))
