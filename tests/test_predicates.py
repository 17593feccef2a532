from itertools import permutations
from math import nextafter

import pytest

from cskel3d.geom import Pt
from cskel3d.predicates import collinear, insphere, insphere_sos, orient3d, orientation

A = Pt(0.0, 0.0, 0.0)
B = Pt(1.0, 0.0, 0.0)
C = Pt(0.0, 1.0, 0.0)
D = Pt(0.0, 0.0, 1.0)


class TestOrientation:
    def test_sign_follows_normal(self):
        assert orient3d(A, B, C, D) > 0
        assert orient3d(A, B, C, Pt(0.2, 0.2, -1.0)) < 0
        assert orientation(A, B, C, D) == 1

    def test_odd_permutation_flips_sign(self):
        assert orientation(B, A, C, D) == -orientation(A, B, C, D)

    def test_exactly_coplanar(self):
        # площина z = x + y, координати точно представимі
        pts = [Pt(1e8, 0.0, 1e8), Pt(1e8 + 1.0, 0.0, 1e8 + 1.0),
               Pt(1e8, 1.0, 1e8 + 1.0), Pt(1e8 + 0.5, 0.25, 1e8 + 0.75)]
        assert orient3d(*pts) == 0.0
        assert orientation(*pts) == 0

    def test_tiny_offset_is_not_lost(self):
        assert orientation(A, B, C, Pt(0.1, 0.1, 1e-300)) == 1
        assert orientation(A, B, C, Pt(0.1, 0.1, -1e-300)) == -1

    def test_collinear(self):
        assert collinear(A, Pt(1.0, 1.0, 1.0), Pt(3.0, 3.0, 3.0))
        assert not collinear(A, B, C)


class TestInsphere:
    def test_inside_outside(self):
        assert insphere(A, B, C, D, Pt(0.5, 0.5, 0.5)) > 0
        assert insphere(A, B, C, D, Pt(2.0, 2.0, 2.0)) < 0

    def test_independent_of_orientation(self):
        e = Pt(0.3, 0.3, 0.3)
        assert insphere(A, B, C, D, e) > 0
        assert insphere(B, A, C, D, e) > 0

    def test_cospherical_and_one_ulp_away(self):
        # (1,1,1) лежить на описаній сфері одиничного кутового тетраедра
        assert insphere(A, B, C, D, Pt(1.0, 1.0, 1.0)) == 0.0
        assert insphere(A, B, C, D, Pt(1.0, 1.0, nextafter(1.0, 2.0))) < 0
        assert insphere(A, B, C, D, Pt(1.0, 1.0, nextafter(1.0, 0.0))) > 0

    def test_flat_tetrahedron(self):
        assert insphere(A, B, C, Pt(1.0, 1.0, 0.0), D) == 0.0
        with pytest.raises(ValueError):
            insphere_sos(A, B, C, Pt(1.0, 1.0, 0.0), D)

    def test_sos_never_zero_and_agrees_with_exact(self):
        assert insphere_sos(A, B, C, D, Pt(0.5, 0.5, 0.5)) == 1
        assert insphere_sos(A, B, C, D, Pt(2.0, 2.0, 2.0)) == -1
        assert insphere_sos(A, B, C, D, Pt(1.0, 1.0, 1.0)) in (-1, 1)

    def test_sos_ignores_vertex_order(self):
        e = Pt(1.0, 1.0, 1.0)
        answers = {insphere_sos(*p, e) for p in permutations((A, B, C, D))}
        assert len(answers) == 1

    def test_sos_consistent_for_cube(self):
        # вісім кутів куба - кососферичні; кожен тест дає той самий знак при повторі
        corners = [Pt(float(x), float(y), float(z)) for x in (0, 1) for y in (0, 1) for z in (0, 1)]
        a, b, c, d, e = corners[0], corners[1], corners[2], corners[4], corners[7]
        first = insphere_sos(a, b, c, d, e)
        assert all(insphere_sos(a, b, c, d, e) == first for _ in range(3))
