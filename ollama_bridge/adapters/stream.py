"""
NDJSON stream decoding for Ollama streamed responses.

Ollama streams one self-contained JSON object per line with no envelope or
length prefix (unlike the SSE "data: " framing of OpenAI-compatible servers).
Network chunks do not respect line boundaries, so bytes are accumulated in a
buffer and only complete lines are parsed.
"""

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterable
from typing import Any, AsyncGenerator, Optional

logger = logging.getLogger(__name__)


class StreamDecoder:
    """
    Split a byte stream into newline-delimited JSON records.

    Each decode() call owns its own buffer, so one decoder instance can serve
    concurrent streams. A line that fails to parse is logged and skipped;
    a trailing partial line at end-of-stream is discarded.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding

    async def decode(
        self,
        chunks: AsyncIterable[bytes],
        abort: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[Any, None]:
        """
        Yield one parsed JSON value per complete line.

        Args:
            chunks: Raw byte buffers in arrival order
            abort: Optional event; once set, no further records are yielded.
                It is checked as each chunk arrives, so a stalled read is
                only interrupted by cancelling the consumer

        Yields:
            Decoded JSON values, in line order
        """
        decoder = codecs.getincrementaldecoder(self._encoding)(errors="replace")
        buffer = ""

        async for chunk in chunks:
            if abort is not None and abort.is_set():
                return

            buffer += decoder.decode(chunk)
            lines = buffer.split("\n")
            buffer = lines.pop()

            for line in lines:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse Ollama stream line: {e}: {line[:200]}")
                    continue
                if abort is not None and abort.is_set():
                    return
                yield record

        if buffer.strip():
            logger.debug(f"Discarding incomplete trailing line ({len(buffer)} chars)")
