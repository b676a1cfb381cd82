"""
Newline-delimited framing for the ingest stream.

Bytes from successive socket reads are accumulated until a delimiter shows
up, so a message may span several reads and one read may carry several
messages. A message larger than the configured limit is reported, never
truncated: its bytes are dropped up to the next delimiter and framing
resumes from there.
"""
from dataclasses import dataclass
from typing import List, Optional, Union

DELIMITER = b"\n"


@dataclass(frozen=True)
class FrameTooLarge:
    limit: int


Frame = Union[bytes, FrameTooLarge]


class MessageFramer:
    def __init__(self, max_message_size: int, delimiter: bytes = DELIMITER):
        if max_message_size <= 0:
            raise ValueError("max_message_size must be positive")
        self.max_message_size = max_message_size
        self.delimiter = delimiter
        self._buffer = bytearray()
        # set while skipping the remainder of an oversized message
        self._discarding = False

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> List[Frame]:
        """Add received bytes and return every frame they complete, in order."""
        self._buffer.extend(data)
        frames: List[Frame] = []

        while True:
            index = self._buffer.find(self.delimiter)
            if index == -1:
                if self._discarding:
                    self._buffer.clear()
                elif len(self._buffer) > self._buffered_limit():
                    frames.append(FrameTooLarge(self.max_message_size))
                    self._buffer.clear()
                    self._discarding = True
                break

            frame = bytes(self._buffer[:index])
            del self._buffer[:index + len(self.delimiter)]

            if self._discarding:
                # tail of a message already reported as too large
                self._discarding = False
                continue

            result = self._complete(frame)
            if result is not None:
                frames.append(result)

        return frames

    def flush(self) -> Optional[Frame]:
        """Return whatever unterminated message is left once the peer is done sending."""
        frame = bytes(self._buffer)
        discarding = self._discarding
        self._buffer.clear()
        self._discarding = False
        if discarding:
            return None
        return self._complete(frame)

    def _buffered_limit(self) -> int:
        # a trailing CR may still be followed by the delimiter and is not counted
        if self._buffer.endswith(b"\r"):
            return self.max_message_size + 1
        return self.max_message_size

    def _complete(self, frame: bytes) -> Optional[Frame]:
        if frame.endswith(b"\r"):
            frame = frame[:-1]
        if not frame.strip():
            return None
        if len(frame) > self.max_message_size:
            return FrameTooLarge(self.max_message_size)
        return frame
