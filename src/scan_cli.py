"""
scan_cli.py — command-line front end for the cube face scanner
==============================================================

Reads frames from a camera (`--camera N`) or a video file (`--video PATH`),
feeds them to `ScanPipeline` and prints every accepted face. When all six
faces are in, the 54-character facelet string is printed and, with
`--solve`, the kociemba solution.

`--show` opens an OpenCV preview with the detected quad, the live sticker
colors and the guidance line; press `q` or Esc to stop.

------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

import cv2
import numpy as np

from cube_solver import SolverClient, SolverError
from scan_types import AcceptedFace, CandidateFace, ScanStatus
from scanner import ScanPipeline
from scanner_config import (
    CAMERA_RESOLUTION,
    DISPLAY_BGR,
    FACE_NAMES,
    GRID_SIZE,
    PREVIEW_WINDOW,
)

logger = logging.getLogger("scan_cli")


def create_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Scan the six faces of a Rubik's cube", allow_abbrev=False)
    src = p.add_mutually_exclusive_group()
    src.add_argument("--camera", type=int, default=0, help="Camera index (default 0).")
    src.add_argument("--video", help="Read frames from a video file instead of a camera.")
    p.add_argument("--debug", action="store_true", help="Verbose logging.")
    p.add_argument("--show", action="store_true", help="Show a preview window.")
    p.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    p.add_argument("--solve", action="store_true", help="Solve the cube once all faces are scanned.")
    return p


def open_capture(camera: int, video: Optional[str]) -> cv2.VideoCapture:
    if video:
        cap = cv2.VideoCapture(video)
    else:
        cap = cv2.VideoCapture(camera)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, CAMERA_RESOLUTION[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, CAMERA_RESOLUTION[1])
        cap.set(cv2.CAP_PROP_FPS, 30)
    return cap


def draw_overlay(frame: np.ndarray, status: ScanStatus) -> np.ndarray:
    disp = frame.copy()
    if status.quad is not None:
        pts = status.quad.as_array().astype(np.int32).reshape(-1, 1, 2)
        edge = (0, 255, 0) if status.stability >= 1.0 else (0, 200, 255)
        cv2.polylines(disp, [pts], True, edge, 3, cv2.LINE_AA)

    if status.live_colors:
        cell = 22
        for i, c in enumerate(status.live_colors):
            x = 10 + (i % GRID_SIZE) * (cell + 4)
            y = 10 + (i // GRID_SIZE) * (cell + 4)
            cv2.rectangle(disp, (x, y), (x + cell, y + cell), DISPLAY_BGR.get(c, (160, 160, 160)), -1)
            cv2.rectangle(disp, (x, y), (x + cell, y + cell), (30, 30, 30), 1)

    h = disp.shape[0]
    cv2.putText(disp, status.guidance, (10, h - 16), cv2.FONT_HERSHEY_SIMPLEX, 0.7,
                (255, 255, 255), 2, cv2.LINE_AA)
    return disp


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = create_arg_parser().parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled.")

    def _on_face(face: AcceptedFace) -> None:
        print(f"{FACE_NAMES[face.name]} ({face.name}): {''.join(face.colors)}", flush=True)

    def _on_duplicate(candidate: CandidateFace) -> None:
        logger.info("Center %s already scanned, ignoring", candidate.center_color)

    pipeline = ScanPipeline(on_face_accepted=_on_face, on_duplicate_center=_on_duplicate)

    cap = open_capture(args.camera, args.video)
    if not cap.isOpened():
        logger.error("Could not open %s", args.video or f"camera {args.camera}")
        cap.release()
        return 2

    def _handler(signum, frame):
        logger.info("Received signal %s, stopping...", signum)
        raise KeyboardInterrupt

    previous = signal.signal(signal.SIGTERM, _handler)

    frames = 0
    try:
        while not pipeline.cube.is_complete:
            ok, frame = cap.read()
            if not ok or frame is None:
                logger.info("End of stream after %d frames", frames)
                break
            frames += 1
            status = pipeline.process_frame(frame)

            if args.show:
                cv2.imshow(PREVIEW_WINDOW, draw_overlay(frame, status))
                key = cv2.waitKey(1) & 0xFF
                if key in (ord('q'), 27):
                    break
            if args.max_frames and frames >= args.max_frames:
                logger.info("Frame limit reached (%d)", frames)
                break
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        signal.signal(signal.SIGTERM, previous)
        cap.release()
        if args.show:
            cv2.destroyAllWindows()
        logger.info("Capture released")

    cube = pipeline.cube
    if not cube.is_complete:
        logger.warning("Scanned %d/6 faces; missing: %s", cube.scanned_count, ', '.join(cube.missing_faces()))
        return 1

    facelets = cube.facelet_string()
    if facelets is None:
        ok, errors = cube.validate()
        for e in errors:
            logger.error("%s", e)
        return 1
    print(facelets)

    if args.solve:
        try:
            print(SolverClient().solve(facelets) or "(already solved)")
        except SolverError as e:
            logger.error("Solve failed: %s", e)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
