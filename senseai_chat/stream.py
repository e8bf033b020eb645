"""Newline-delimited JSON framing for streamed replies."""

import codecs
import logging
from typing import List, Union

from pydantic import TypeAdapter, ValidationError

from .models import ChunkFrame, CompleteFrame, ErrorFrame, StreamFrame

logger = logging.getLogger(__name__)

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"

frame_adapter: TypeAdapter = TypeAdapter(StreamFrame)


def encode_frame(frame: Union[ChunkFrame, CompleteFrame, ErrorFrame]) -> bytes:
    """Serialize one frame as a newline-terminated JSON line."""
    return (frame.model_dump_json(by_alias=True) + "\n").encode("utf-8")


class FrameDecoder:
    """
    Incremental decoder for a framed response body.

    Bytes may arrive split anywhere, including inside a multi-byte
    character or in the middle of a line. Only newline-terminated lines
    are parsed; the tail is held until the next ``feed``.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, data: bytes) -> List[StreamFrame]:
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")

        frames = []
        for line in lines:
            if not line.strip():
                continue
            try:
                frames.append(frame_adapter.validate_json(line))
            except ValidationError:
                # Stray or malformed data does not end the stream
                logger.warning(f"Failed to parse stream frame: {line[:100]}")
        return frames
