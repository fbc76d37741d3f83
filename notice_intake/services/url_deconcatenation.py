"""
URL Deconcatenation

Scrapers and copy-paste errors regularly merge several URLs into a single
submitted value, e.g. ``http://example.com/http://example2.com``. This module
splits such values at each literal scheme occurrence.
"""

import re
from typing import List

import structlog

logger = structlog.get_logger()


class UrlDeconcatenator:
    """
    Split strings containing more than one ``http://`` or ``https://`` scheme.

    Only the literal scheme text counts as a boundary, so hosts such as
    ``httpwww.example.cz`` are never split.
    """

    SCHEME_PATTERN = re.compile(r"https?://")

    def deconcatenate(self, raw: str) -> List[str]:
        """
        Return the URLs embedded in ``raw``, in their original order.

        Chunk *i* starts at scheme occurrence *i* and ends right before
        occurrence *i + 1*. Content is kept verbatim (no trimming), and any
        text in front of the first scheme stays on the first chunk, so joining
        the result always reproduces ``raw``.

        Args:
            raw: URL value exactly as submitted

        Returns:
            Non-empty list; a single element equal to ``raw`` when it holds
            zero or one scheme occurrence
        """
        starts = [match.start() for match in self.SCHEME_PATTERN.finditer(raw)]
        if len(starts) < 2:
            return [raw]

        boundaries = [0] + starts[1:] + [len(raw)]
        chunks = [raw[begin:end] for begin, end in zip(boundaries, boundaries[1:])]

        logger.info("url_deconcatenation.split", original=raw[:200], parts=len(chunks))
        return chunks


# Singleton instance for convenience
url_deconcatenator = UrlDeconcatenator()
