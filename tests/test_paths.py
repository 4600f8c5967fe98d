#!/usr/bin/env python3
"""
Tests for SVG path-data utilities.
"""

import pytest

from vectrace.paths import (
    build_path, format_number, is_valid_svg_path, merge_similar_paths, parse_path_data,
    path_complexity, path_endpoints, path_to_absolute, remove_redundant_commands,
    round_path_coords,
)


class TestValidation:
    """Test path grammar validation."""

    @pytest.mark.parametrize("d", [
        "M 0 0 L 10 0 Z",
        "M0,0L10,0z",
        "M 0 0 C 1 1 2 2 3 3",
        "M 0 0 Q 1 1 2 2 T 4 4",
        "m 1 1 l 2 2 h 3 v 4 z",
        "M 0 0 A 5 5 0 1 0 10 10",
        "M 1e2 -3.5 L .5 .5",
    ])
    def test_valid(self, d):
        assert is_valid_svg_path(d)

    @pytest.mark.parametrize("d", [
        "",
        "L 0 0",
        "M 0",
        "M 0 0 L NaN 0",
        "M 0 0 L 1e999 0",
        "M 0 0 C 1 1 2 2",
        "M 0 0 A 5 5 0 2 1 10 10",
        "M 0 0 Z 1",
        "M 0 0 X 1 1",
    ])
    def test_invalid(self, d):
        assert not is_valid_svg_path(d)

    def test_non_string(self):
        assert not is_valid_svg_path(None)


class TestParsing:
    """Test parsing and formatting."""

    def test_parse(self):
        """Test command and argument extraction."""
        assert parse_path_data("M 0 0 L 10,5 Z") == [("M", [0.0, 0.0]), ("L", [10.0, 5.0]), ("Z", [])]

    def test_format_number(self):
        """Test trailing zero stripping and negative zero."""
        assert format_number(3.0) == "3"
        assert format_number(2.50) == "2.5"
        assert format_number(-0.0001, 2) == "0"

    def test_format_non_finite(self):
        """Test that non-finite coordinates are refused."""
        with pytest.raises(ValueError):
            format_number(float("inf"))


class TestRewriting:
    """Test absolute conversion and optimization."""

    def test_to_absolute(self):
        """Test relative and H/V conversion."""
        assert path_to_absolute("m 1 1 l 2 0 h 3 v 4 z") == "M 1 1 L 3 1 L 6 1 L 6 5 Z"

    def test_implicit_lineto(self):
        """Test that extra moveto pairs become linetos."""
        assert path_to_absolute("m 1 1 2 2") == "M 1 1 L 3 3"

    def test_endpoints(self):
        """Test segment endpoint extraction."""
        assert path_endpoints("M 0 0 L 1 0 L 1 1 Z") == [(0, 0), (1, 0), (1, 1)]

    def test_remove_redundant(self):
        """Test consecutive movetos and zero-length lines are dropped."""
        assert remove_redundant_commands("M 0 0 M 1 1 L 1 1 L 5 1 Z") == "M 1 1 L 5 1 Z"

    def test_round_coords(self):
        """Test coordinate rounding."""
        assert round_path_coords("M 0.333333 1.0049 L 2.5 -0.001", 2) == "M 0.33 1 L 2.5 0"

    def test_complexity(self):
        """Test the complexity score."""
        assert path_complexity("M 0 0 L 1 1 Z") == pytest.approx(3.4)


class TestMerging:
    """Test same-color path merging."""

    def test_merge_exact(self):
        """Test paths with equal fills merge into the first."""
        paths = [
            build_path("M 0 0 L 1 1 Z", "#ff0000"),
            build_path("M 5 5 L 6 6 Z", "#0000ff"),
            build_path("M 2 2 L 3 3 Z", "#ff0000"),
        ]
        merged = merge_similar_paths(paths)
        assert len(merged) == 2
        assert merged[0].fill_color == "#ff0000"
        assert merged[0].path_data == "M 0 0 L 1 1 Z M 2 2 L 3 3 Z"
        assert is_valid_svg_path(merged[0].path_data)

    def test_merge_tolerance(self):
        """Test fills within tolerance merge."""
        paths = [build_path("M 0 0 L 1 1 Z", "#ff0000"), build_path("M 2 2 L 3 3 Z", "#fe0000")]
        assert len(merge_similar_paths(paths)) == 2
        assert len(merge_similar_paths(paths, color_tolerance=2)) == 1
