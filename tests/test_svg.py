#!/usr/bin/env python3
"""
Tests for SVG generation and validation.
"""

import xml.etree.ElementTree as ET

import pytest

from vectrace.paths import build_path
from vectrace.svg import SvgGenerator


def sample_paths():
    return [
        build_path("M 0 0 L 10 0 L 10 10 Z", "#ff0000"),
        build_path("M 20 20 L 30 20 L 30 30 Z", "#0000ff"),
        build_path("M 5 5 L 6 5 L 6 6 Z", "#ff0000"),
    ]


class TestGenerate:
    """Test document assembly."""

    def test_empty(self):
        """Test an empty path list still gives a valid document."""
        result = SvgGenerator().generate_svg([], 10, 20)
        assert result.path_count == 0
        assert result.color_count == 0
        assert "</svg>" in result.svg_content
        assert 'width="10" height="20" viewBox="0 0 10 20"' in result.svg_content
        assert SvgGenerator.validate_svg(result.svg_content).is_valid
        ET.fromstring(result.svg_content.encode("utf-8"))

    def test_grouping_without_merge(self):
        """Test groups follow first-seen fill order."""
        result = SvgGenerator(merge_paths=False).generate_svg(sample_paths(), 40, 40)
        assert result.path_count == 3
        assert result.color_count == 2
        svg = result.svg_content
        assert svg.index('<g fill="#ff0000">') < svg.index('<g fill="#0000ff">')
        assert svg.count("<path ") == 3

    def test_merge(self):
        """Test same-fill paths are merged by default."""
        result = SvgGenerator().generate_svg(sample_paths(), 40, 40)
        assert result.path_count == 2
        assert result.color_count == 2
        assert SvgGenerator.validate_svg(result.svg_content).is_valid

    def test_ungrouped(self):
        """Test per-path fills when grouping is off."""
        result = SvgGenerator(group_by_color=False, merge_paths=False).generate_svg(sample_paths(), 40, 40)
        assert "<g " not in result.svg_content
        assert result.svg_content.count('fill="#ff0000"') == 2
        assert result.color_count == 2

    def test_rounding(self):
        """Test coordinates are rounded to the configured precision."""
        paths = [build_path("M 0.123456 0 L 10.98765 5 Z", "#000000")]
        svg = SvgGenerator(precision=2).generate_svg(paths, 20, 20).svg_content
        assert 'd="M 0.12 0 L 10.99 5 Z"' in svg

    def test_redundant_removed(self):
        """Test zero-length segments are dropped."""
        paths = [build_path("M 0 0 L 0 0 L 5 5 Z", "#000000")]
        svg = SvgGenerator().generate_svg(paths, 20, 20).svg_content
        assert 'd="M 0 0 L 5 5 Z"' in svg

    def test_no_optimization(self):
        paths = [build_path("M 0 0 L 0 0 L 5 5 Z", "#000000")]
        svg = SvgGenerator(enable_optimization=False).generate_svg(paths, 20, 20).svg_content
        assert 'd="M 0 0 L 0 0 L 5 5 Z"' in svg

    def test_sizes(self):
        """Test size statistics."""
        result = SvgGenerator().generate_svg(sample_paths(), 40, 30)
        assert result.original_size == 40 * 30 * 4 + 1024
        assert result.vector_size == len(result.svg_content.encode("utf-8"))
        assert result.compression_ratio == pytest.approx(result.original_size / result.vector_size)

    def test_view_box(self):
        svg = SvgGenerator().generate_svg([], 100, 50, view_box=(20, 10)).svg_content
        assert 'width="100" height="50" viewBox="0 0 20 10"' in svg

    def test_deterministic(self):
        """Test identical input gives identical bytes."""
        first = SvgGenerator().generate_svg(sample_paths(), 40, 40).svg_content
        second = SvgGenerator().generate_svg(sample_paths(), 40, 40).svg_content
        assert first == second

    def test_stroke(self):
        paths = [build_path("M 0 0 L 5 5", "none", stroke_color="#000000", stroke_width=1.5)]
        svg = SvgGenerator().generate_svg(paths, 10, 10).svg_content
        assert 'stroke="#000000" stroke-width="1.5"' in svg


class TestValidate:
    """Test SVG validation."""

    def test_empty_string(self):
        result = SvgGenerator.validate_svg("")
        assert not result.is_valid
        assert result.errors

    def test_missing_namespace(self):
        result = SvgGenerator.validate_svg("<svg></svg>")
        assert not result.is_valid
        assert any("namespace" in e for e in result.errors)

    def test_malformed(self):
        result = SvgGenerator.validate_svg('<svg xmlns="http://www.w3.org/2000/svg"><g></svg>')
        assert not result.is_valid
        assert any("Malformed" in e for e in result.errors)

    def test_bad_path(self):
        svg = '<svg xmlns="http://www.w3.org/2000/svg"><path d="M 0 0 L 1"/></svg>'
        result = SvgGenerator.validate_svg(svg)
        assert not result.is_valid
        assert any("Invalid path data" in e for e in result.errors)

    def test_garbage(self):
        """Test arbitrary text never raises."""
        assert not SvgGenerator.validate_svg("not xml at all <<<").is_valid


class TestStats:
    def test_optimization_stats(self):
        original = SvgGenerator(enable_optimization=False).generate_svg(sample_paths(), 40, 40).svg_content
        optimized = SvgGenerator().generate_svg(sample_paths(), 40, 40).svg_content
        stats = SvgGenerator.optimization_stats(original, optimized)
        assert stats["original_paths"] == 3
        assert stats["optimized_paths"] == 2
        assert stats["size_reduction"] == stats["original_size"] - stats["optimized_size"]
