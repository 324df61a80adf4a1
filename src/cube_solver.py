"""
cube_solver.py — kociemba adapter for a scanned cube
====================================================

Thin collaborator between the scanner and the `kociemba` two-phase solver:

* **SolverClient.solve(facelets)**: validates the 54-character facelet string
  (U, R, F, D, L, B order) and returns kociemba's move sequence. Results are
  cached per facelet string, failures included.
* **SolverClient.solve_async(facelets, on_done)**: same call on a single-worker
  thread pool; returns a `concurrent.futures.Future`. `cancel()` drops any
  work that has not started yet.
* **parse_solution(text)**: "R U' F2" -> list of `Move` records, the form a
  robot controller or an animation wants.

--------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

import kociemba

from scanner_config import FACE_ORDER, STICKERS_PER_COLOR, STICKERS_PER_FACE

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

SOLVED_FACELETS = ''.join(f * STICKERS_PER_FACE for f in FACE_ORDER)


class SolverError(Exception):
    """Raised when a facelet string is malformed or kociemba rejects it."""


@dataclass(frozen=True)
class Move:
    notation: str
    face: str
    direction: int  # 1 clockwise, -1 counter-clockwise
    double: bool

    @property
    def quarter_turns(self) -> int:
        return 2 if self.double else 1


def parse_solution(text: str) -> List[Move]:
    moves: List[Move] = []
    for tok in (text or "").split():
        face = tok[0].upper()
        if face not in FACE_ORDER:
            raise ValueError(f"Unknown move token: {tok!r}")
        suffix = tok[1:]
        if suffix == "":
            moves.append(Move(tok, face, 1, False))
        elif suffix == "'":
            moves.append(Move(tok, face, -1, False))
        elif suffix in ("2", "2'"):
            moves.append(Move(tok, face, 1, True))
        else:
            raise ValueError(f"Unknown move token: {tok!r}")
    return moves


def check_facelets(facelets: str) -> None:
    """Cheap structural checks before handing the string to kociemba."""
    if not isinstance(facelets, str) or len(facelets) != STICKERS_PER_FACE * len(FACE_ORDER):
        raise SolverError("facelets must be a 54-character string")
    cnt = Counter(facelets)
    bad = [f for f in FACE_ORDER if cnt.get(f, 0) != STICKERS_PER_COLOR]
    if bad or set(cnt) - set(FACE_ORDER):
        raise SolverError(f"each of {''.join(FACE_ORDER)} must appear 9 times (got {dict(cnt)})")
    for i, face in enumerate(FACE_ORDER):
        if facelets[i * STICKERS_PER_FACE + 4] != face:
            raise SolverError(f"center of face {face} is {facelets[i * STICKERS_PER_FACE + 4]}")


# Thread pool for asynchronous solves (single worker)
_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=1)


class SolverClient:
    def __init__(self, executor: Optional[concurrent.futures.Executor] = None):
        self._executor = executor or _EXECUTOR
        self._solve_cache: Dict[str, Optional[str]] = {}
        self._pending: Set[concurrent.futures.Future] = set()
        self._lock = threading.Lock()

    def solve(self, facelets: str) -> str:
        """Solution string for `facelets`; raises SolverError when unsolvable."""
        check_facelets(facelets)
        with self._lock:
            if facelets in self._solve_cache:
                cached = self._solve_cache[facelets]
                logger.debug("Solver cache hit for facelets")
                if cached is None:
                    raise SolverError("cube state is not solvable")
                return cached
        if facelets == SOLVED_FACELETS:
            sol = ""
        else:
            try:
                sol = kociemba.solve(facelets)
            except ValueError as e:
                logger.warning("kociemba rejected facelets: %s", e)
                with self._lock:
                    self._solve_cache[facelets] = None
                raise SolverError(f"cube state is not solvable: {e}") from e
        sol = sol.strip()
        with self._lock:
            self._solve_cache[facelets] = sol
        logger.info("Solved in %d moves: %s", len(sol.split()), sol)
        return sol

    def solve_async(self, facelets: str,
                    on_done: Optional[Callable[[Optional[str], Optional[BaseException]], None]] = None
                    ) -> concurrent.futures.Future:
        fut = self._executor.submit(self.solve, facelets)
        with self._lock:
            self._pending.add(fut)

        def _finished(f: concurrent.futures.Future) -> None:
            with self._lock:
                self._pending.discard(f)
            if on_done is None or f.cancelled():
                return
            err = f.exception()
            on_done(None if err else f.result(), err)

        fut.add_done_callback(_finished)
        return fut

    def cancel(self) -> int:
        """Cancel queued solves; returns how many were dropped."""
        with self._lock:
            pending = list(self._pending)
        dropped = sum(1 for f in pending if f.cancel())
        if dropped:
            logger.info("Cancelled %d pending solve(s)", dropped)
        return dropped
