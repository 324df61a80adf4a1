"""
temporal_consensus.py — majority vote over the last few classified frames.

A face is only reported once every one of the nine positions agrees on one
color in at least `quorum` of the buffered frames. A frame that changes
`shift_reset` or more positions at once means the cube is moving, so the
buffer starts over from that frame.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, deque
from typing import Deque, List, Optional, Sequence

from scanner_config import (
    STICKERS_PER_FACE,
    VOTING_BUFFER_SIZE,
    VOTING_MIN_FRAMES,
    VOTING_QUORUM,
    VOTING_SHIFT_RESET,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class TemporalConsensus:
    def __init__(self,
                 capacity: int = VOTING_BUFFER_SIZE,
                 min_frames: int = VOTING_MIN_FRAMES,
                 quorum: float = VOTING_QUORUM,
                 shift_reset: int = VOTING_SHIFT_RESET):
        if capacity < 1 or min_frames < 1:
            raise ValueError("capacity and min_frames must be positive")
        if not 0.0 < quorum <= 1.0:
            raise ValueError("quorum must be in (0, 1]")
        self.capacity = int(capacity)
        self.min_frames = int(min_frames)
        self.quorum = float(quorum)
        self.shift_reset = int(shift_reset)
        self._buffer: Deque[List[str]] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()

    def required_votes(self) -> int:
        # small epsilon keeps e.g. 6 * (5/6) from rounding up to 6
        return max(1, math.ceil(len(self._buffer) * self.quorum - 1e-9))

    def add_frame(self, colors: Sequence[str]) -> Optional[List[str]]:
        """
        Buffer one frame's nine colors; return the voted colors or None while
        there is no consensus yet.
        """
        if len(colors) != STICKERS_PER_FACE:
            return None
        frame = list(colors)

        if self._buffer and self.shift_reset > 0:
            changed = sum(1 for a, b in zip(self._buffer[-1], frame) if a != b)
            if changed >= self.shift_reset:
                logger.debug("%d positions changed between frames, restarting vote", changed)
                self._buffer.clear()

        self._buffer.append(frame)
        if len(self._buffer) < self.min_frames:
            return None
        return self.consensus()

    def consensus(self) -> Optional[List[str]]:
        if not self._buffer:
            return None
        needed = self.required_votes()
        voted: List[str] = []
        for pos in range(STICKERS_PER_FACE):
            color, count = Counter(f[pos] for f in self._buffer).most_common(1)[0]
            if count < needed:
                return None
            voted.append(color)
        return voted
