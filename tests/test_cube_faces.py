"""Tests for the scanned-cube store and facelet string assembly."""

import pytest

from cube_faces import ScannedCube, build_facelet_string, face_for_center
from scan_types import AcceptedFace, CandidateFace
from scanner_config import CENTER_TO_FACE

SOLVED = "UUUUUUUUURRRRRRRRRFFFFFFFFFDDDDDDDDDLLLLLLLLLBBBBBBBBB"


def face(colors, ts=0.0):
    cand = CandidateFace.from_colors(colors)
    return AcceptedFace(name=face_for_center(cand.center_color), stickers=cand.stickers, timestamp_ms=ts)


@pytest.fixture
def solved_cube():
    cube = ScannedCube()
    for color in CENTER_TO_FACE:
        assert cube.add_face(face([color] * 9))
    return cube


class TestFaceForCenter:
    def test_mapping(self):
        assert [face_for_center(c) for c in "WYROBG"] == ['U', 'D', 'F', 'B', 'R', 'L']

    def test_unknown(self):
        with pytest.raises(ValueError):
            face_for_center('X')


class TestScannedCube:
    def test_empty(self):
        cube = ScannedCube()
        assert cube.scanned_count == 0
        assert not cube.is_complete
        assert cube.missing_faces() == ['Up', 'Front', 'Left', 'Back', 'Right', 'Down']
        assert cube.facelet_string() is None

    def test_add_and_refuse_duplicate_center(self):
        cube = ScannedCube()
        assert cube.add_face(face(['R', 'O', 'Y', 'G', 'R', 'B', 'W', 'R', 'O']))
        assert not cube.can_scan('R')
        assert not cube.add_face(face(['G', 'G', 'G', 'G', 'R', 'G', 'G', 'G', 'G']))
        assert cube.scanned_count == 1
        assert 'Front' not in cube.missing_faces()

    def test_replace_face(self):
        cube = ScannedCube()
        cube.add_face(face(['R', 'O', 'Y', 'G', 'R', 'B', 'W', 'R', 'O']))
        cube.replace_face(face(['R'] * 8 + ['G']))
        assert cube.faces['F'].colors == ['R'] * 8 + ['G']
        assert cube.scanned_count == 1

    def test_remove_and_reset(self, solved_cube):
        assert solved_cube.remove_face('U')
        assert not solved_cube.remove_face('U')
        assert solved_cube.missing_faces() == ['Up']
        solved_cube.reset()
        assert solved_cube.scanned_count == 0

    def test_solved_facelets(self, solved_cube):
        assert solved_cube.is_complete
        assert solved_cube.validate() == (True, [])
        assert solved_cube.facelet_string() == SOLVED

    def test_incomplete_validation(self):
        cube = ScannedCube()
        cube.add_face(face(['W'] * 9))
        ok, errors = cube.validate()
        assert not ok
        assert errors == ["Only 1/6 faces scanned"]

    def test_bad_color_counts(self, solved_cube):
        solved_cube.replace_face(face(['W'] * 8 + ['Y']))
        ok, errors = solved_cube.validate()
        assert not ok
        assert any(e.startswith("Color W") for e in errors)
        assert solved_cube.facelet_string() is None

    def test_set_all_faces(self):
        cube = ScannedCube()
        cube.set_all_faces({name: [color] * 9 for color, name in CENTER_TO_FACE.items()})
        assert cube.facelet_string() == SOLVED

    def test_set_all_faces_rejects_short_face(self):
        with pytest.raises(ValueError):
            ScannedCube().set_all_faces({'U': ['W'] * 8})


def test_build_facelet_string_uses_centers():
    faces = {name: face([color] * 9) for color, name in CENTER_TO_FACE.items()}
    # swap one sticker pair between Up and Front
    up = faces['U'].colors
    up[0] = 'R'
    front = faces['F'].colors
    front[0] = 'W'
    faces['U'] = face(up)
    faces['F'] = face(front)
    s = build_facelet_string(faces)
    assert s[0] == 'F'
    assert s[18] == 'U'
    assert len(s) == 54
