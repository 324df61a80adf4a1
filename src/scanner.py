"""
scanner.py — per-frame scan pipeline
====================================

`ScanPipeline.process_frame(frame)` runs one video frame through

    FaceDetector -> StickerSampler -> ColorClassifier
        -> TemporalConsensus + StabilityGate -> CaptureValidator -> ScannedCube

and returns a `ScanStatus` for the UI. The pipeline owns the only state that
survives between frames: the voting buffer, the stability clock and the
capture cooldown. A frame without a detection (or with a degenerate quad)
clears the first two.

A face is committed when the quad has been stable for `threshold_ms`, the
voting buffer has a quorum on all nine positions and no cooldown is running.
After a commit the buffer and clock restart and captures are blocked for
`cooldown_ms`. A capture whose center color is already scanned is reported
as `DUPLICATE_CENTER` and handed to `on_duplicate_center` so the caller can
offer to replace the stored face.

Nothing raised while processing a frame escapes `process_frame`; it is logged
and reported as `NO_DETECTION`.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

import numpy as np

from capture_validator import CaptureValidator
from color_classifier import ColorClassifier
from cube_faces import ScannedCube, face_for_center
from face_detector import FaceDetector
from frames import Frame
from scan_types import AcceptedFace, CandidateFace, ScanFailure, ScanStatus
from scanner_config import CAPTURE_COOLDOWN_MS, FACE_NAMES, STATUS_LOG_INTERVAL_MS
from stability_gate import StabilityGate
from stability_gate import now_ms as _now
from sticker_sampler import StickerSampler
from temporal_consensus import TemporalConsensus

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

FaceCallback = Callable[[AcceptedFace], None]
DuplicateCallback = Callable[[CandidateFace], None]


def guidance_text(cube: ScannedCube, detected: bool) -> str:
    n = cube.scanned_count
    if cube.is_complete:
        return "All faces scanned!"
    if not detected:
        missing = cube.missing_faces()
        if missing:
            return f"Show {' or '.join(missing)} face ({n}/6)"
        return f"Hold cube face in front of camera ({n}/6)"
    return f"Hold steady... ({n}/6 scanned)"


class ScanPipeline:
    def __init__(self,
                 cube: Optional[ScannedCube] = None,
                 detector: Optional[FaceDetector] = None,
                 sampler: Optional[StickerSampler] = None,
                 classifier: Optional[ColorClassifier] = None,
                 consensus: Optional[TemporalConsensus] = None,
                 gate: Optional[StabilityGate] = None,
                 validator: Optional[CaptureValidator] = None,
                 cooldown_ms: float = CAPTURE_COOLDOWN_MS,
                 log_interval_ms: float = STATUS_LOG_INTERVAL_MS,
                 on_face_accepted: Optional[FaceCallback] = None,
                 on_duplicate_center: Optional[DuplicateCallback] = None):
        self.cube = cube if cube is not None else ScannedCube()
        self.detector = detector or FaceDetector()
        self.sampler = sampler or StickerSampler()
        self.classifier = classifier or ColorClassifier()
        self.consensus = consensus or TemporalConsensus()
        self.gate = gate or StabilityGate()
        self.validator = validator or CaptureValidator()
        self.cooldown_ms = float(cooldown_ms)
        self.log_interval_ms = float(log_interval_ms)
        self.on_face_accepted = on_face_accepted
        self.on_duplicate_center = on_duplicate_center

        self._cooldown_until = float("-inf")
        self._last_log_ms = float("-inf")

    # -----------------------
    # state
    # -----------------------
    def reset(self) -> None:
        """Forget transient state (votes, stability, cooldown); keeps the cube."""
        self.consensus.reset()
        self.gate.reset()
        self._cooldown_until = float("-inf")

    def _invalidate(self) -> None:
        self.consensus.reset()
        self.gate.reset()

    def cooldown_active(self, now: float) -> bool:
        return now < self._cooldown_until

    def _status(self, **kw) -> ScanStatus:
        detected = kw.get("detected", False)
        kw.setdefault("guidance", guidance_text(self.cube, detected))
        return ScanStatus(scanned_count=self.cube.scanned_count,
                          missing_faces=self.cube.missing_faces(), **kw)

    def _log_throttled(self, now: float, quad, frame: Frame) -> None:
        if now - self._last_log_ms < self.log_interval_ms:
            return
        self._last_log_ms = now
        logger.debug("scan: detected=%s strategy=%s area=%.0f frame=%dx%d votes=%d stable=%.0fms",
                     quad is not None, self.detector.last_strategy,
                     quad.area if quad is not None else 0.0,
                     frame.width, frame.height, len(self.consensus), self.gate.elapsed_ms)

    @staticmethod
    def _notify(callback, arg) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception as e:
            logger.exception("scan callback failed: %s", e)

    # -----------------------
    # per-frame entry point
    # -----------------------
    def process_frame(self, frame: Union[Frame, np.ndarray], now_ms: Optional[float] = None) -> ScanStatus:
        now = _now() if now_ms is None else float(now_ms)
        try:
            return self._process(frame, now)
        except Exception as e:
            logger.exception("frame processing failed: %s", e)
            self._invalidate()
            return self._status(failure=ScanFailure.NO_DETECTION, reason=str(e),
                                cooldown_active=self.cooldown_active(now))

    def _process(self, frame: Union[Frame, np.ndarray], now: float) -> ScanStatus:
        if not isinstance(frame, Frame):
            frame = Frame.from_array(frame, timestamp_ms=now)
        cooldown = self.cooldown_active(now)

        quad = self.detector.detect(frame)
        self._log_throttled(now, quad, frame)
        if quad is None:
            self._invalidate()
            return self._status(failure=ScanFailure.NO_DETECTION, cooldown_active=cooldown)

        samples = self.sampler.sample(frame, quad)
        if samples is None:
            self._invalidate()
            return self._status(failure=ScanFailure.SAMPLE_FAILURE, quad=quad, cooldown_active=cooldown)

        live = self.classifier.classify(samples)
        elapsed = self.gate.update(quad, now)
        voted = self.consensus.add_frame(live)
        status_kw = dict(detected=True, quad=quad, live_colors=live, voted_colors=voted,
                         stable_ms=elapsed, stability=self.gate.progress(elapsed),
                         cooldown_active=cooldown)

        if voted is None:
            return self._status(failure=ScanFailure.LOW_CONFIDENCE, **status_kw)
        if cooldown or self.cube.is_complete or not self.gate.is_stable(elapsed):
            return self._status(**status_kw)

        candidate = CandidateFace.from_colors(voted, samples)
        logger.info("stable face, attempting capture: %s (center %s)", ''.join(voted), candidate.center_color)
        result = self.validator.validate(candidate, self.cube.accepted_faces())

        if result.failure is ScanFailure.DUPLICATE_CENTER:
            name = FACE_NAMES[face_for_center(candidate.center_color)]
            logger.info("%s already scanned", name)
            # needs another full stability period before asking again
            self.gate.reset()
            self._notify(self.on_duplicate_center, candidate)
            missing = ' or '.join(self.cube.missing_faces())
            return self._status(failure=ScanFailure.DUPLICATE_CENTER, reason=result.reason,
                                guidance=f"{name} already scanned! Show {missing}", **status_kw)

        if not result.ok:
            logger.warning("capture rejected: %s (%s)", result.reason, ''.join(voted))
            self.consensus.reset()
            return self._status(failure=ScanFailure.VALIDATION_FAILURE, reason=result.reason, **status_kw)

        accepted = self.cube.make_face(result.face, now)
        if not self.cube.add_face(accepted):
            logger.error("cube refused face %s", accepted.name)
            self._invalidate()
            return self._status(failure=ScanFailure.VALIDATION_FAILURE, reason="face not stored", **status_kw)

        self._cooldown_until = now + self.cooldown_ms
        self._invalidate()
        self._notify(self.on_face_accepted, accepted)
        status_kw.update(cooldown_active=True, voted_colors=accepted.colors)
        return self._status(accepted=accepted, **status_kw)

    def replace_face(self, candidate: CandidateFace, now_ms: Optional[float] = None) -> AcceptedFace:
        """Store a duplicate-center candidate over the face already scanned."""
        now = _now() if now_ms is None else float(now_ms)
        face = self.cube.make_face(candidate, now)
        self.cube.replace_face(face)
        self._cooldown_until = now + self.cooldown_ms
        self._invalidate()
        return face
