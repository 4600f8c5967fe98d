"""
Vectrace SVG Generation Module.

Assembles vector paths into a standalone SVG document:
- Redundant command removal and same-paint path merging
- Coordinate rounding to a fixed precision
- Grouping by fill color in first-seen order
- Structural validation returning an error list

Output is deterministic: the same paths always give the same bytes.

Usage:
    from vectrace.svg import SvgGenerator

    generator = SvgGenerator(precision=2)
    result = generator.generate_svg(paths, width=256, height=256)
    errors = generator.validate_svg(result.svg_content).errors
"""

import logging
import re
import xml.etree.ElementTree as ET
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import quoteattr

from vectrace.paths import (
    is_valid_svg_path, merge_similar_paths, path_complexity,
    remove_redundant_commands, round_path_coords,
)
from vectrace.types import ColorPalette, ProcessingResult, VectorPath


logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'

# Fixed overhead added to raw RGBA size when no source file size is known
RASTER_OVERHEAD_BYTES = 1024

_D_ATTR_RE = re.compile(r'\sd\s*=\s*(["\'])(.*?)\1', re.DOTALL)


@dataclass
class SvgValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _fmt_size(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


class SvgGenerator:
    """
    Path list to SVG markup.

    Args:
        enable_optimization: Run the redundant-command and merge passes
        group_by_color: Wrap same-fill paths in a shared ``<g fill>``
        remove_redundant_points: Drop zero-length and duplicate moveto commands
        merge_paths: Concatenate paths with identical paint
        precision: Decimal places kept in coordinates
    """

    def __init__(self, enable_optimization: bool = True, group_by_color: bool = True,
                 remove_redundant_points: bool = True, merge_paths: bool = True,
                 precision: int = 2):
        self.enable_optimization = enable_optimization
        self.group_by_color = group_by_color
        self.remove_redundant_points = remove_redundant_points
        self.merge_paths = merge_paths
        self.precision = precision

    # ------------------------------------------------------------------
    # Optimization
    # ------------------------------------------------------------------

    def optimize_paths(self, paths: Sequence[VectorPath]) -> List[VectorPath]:
        """Apply the enabled optimization passes and round coordinates."""
        result = list(paths)
        if self.enable_optimization:
            if self.remove_redundant_points:
                result = [replace(p, path_data=remove_redundant_commands(p.path_data)) for p in result]
            if self.merge_paths:
                result = merge_similar_paths(result)

        rounded = []
        for path in result:
            data = round_path_coords(path.path_data, self.precision)
            if not data:
                continue
            rounded.append(replace(path, path_data=data, complexity=path_complexity(data)))
        return rounded

    # ------------------------------------------------------------------
    # Markup
    # ------------------------------------------------------------------

    @staticmethod
    def _path_element(path: VectorPath, include_fill: bool, indent: str) -> str:
        attrs = [f"d={quoteattr(path.path_data)}"]
        if include_fill:
            attrs.append(f"fill={quoteattr(path.fill_color)}")
        if path.stroke_color:
            attrs.append(f"stroke={quoteattr(path.stroke_color)}")
            if path.stroke_width is not None:
                attrs.append(f'stroke-width="{_fmt_size(path.stroke_width)}"')
        return f"{indent}<path {' '.join(attrs)}/>"

    def generate_svg(self, paths: Sequence[VectorPath], width: int, height: int,
                     palette: Optional[ColorPalette] = None,
                     original_size: Optional[int] = None,
                     view_box: Optional[Tuple[float, float]] = None) -> ProcessingResult:
        """
        Build an SVG document from paths.

        Args:
            paths: Vector paths in paint order
            width: Document width
            height: Document height
            palette: Palette the paths were drawn from (informational)
            original_size: Source size in bytes; estimated from the raster size when omitted
            view_box: Coordinate space (defaults to width x height)

        Returns:
            ProcessingResult with the markup and size statistics
        """
        optimized = self.optimize_paths(paths)
        vb_width, vb_height = view_box if view_box else (width, height)

        lines = [
            XML_HEADER,
            f'<svg xmlns="{SVG_NAMESPACE}" width="{_fmt_size(width)}" height="{_fmt_size(height)}" '
            f'viewBox="0 0 {_fmt_size(vb_width)} {_fmt_size(vb_height)}">',
        ]

        if self.group_by_color:
            groups: "OrderedDict[str, List[VectorPath]]" = OrderedDict()
            for path in optimized:
                groups.setdefault(path.fill_color, []).append(path)
            for fill, members in groups.items():
                lines.append(f"  <g fill={quoteattr(fill)}>")
                lines.extend(self._path_element(p, False, "    ") for p in members)
                lines.append("  </g>")
            color_count = len(groups)
        else:
            lines.extend(self._path_element(p, True, "  ") for p in optimized)
            color_count = len({p.fill_color for p in optimized})

        lines.append("</svg>")
        svg = "\n".join(lines) + "\n"

        if original_size is None:
            original_size = int(width * height * 4 + RASTER_OVERHEAD_BYTES)
        result = ProcessingResult(
            svg_content=svg,
            original_size=original_size,
            vector_size=len(svg.encode("utf-8")),
            color_count=color_count,
            path_count=len(optimized),
            palette=palette,
            paths=optimized,
        )
        logger.debug(f"Generated SVG: {result.path_count} paths, {color_count} groups, {result.vector_size} bytes")
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_svg(svg_content: str) -> SvgValidation:
        """
        Check structure and path data of an SVG document.

        Never raises; problems are returned as messages.
        """
        errors = []
        if not isinstance(svg_content, str) or not svg_content.strip():
            return SvgValidation(False, ["SVG content is empty"])

        if not re.search(r"<svg[\s>]", svg_content):
            errors.append("Missing <svg> root element")
        if f'xmlns="{SVG_NAMESPACE}"' not in svg_content and f"xmlns='{SVG_NAMESPACE}'" not in svg_content:
            errors.append("Missing SVG namespace declaration")
        if "</svg>" not in svg_content and not re.search(r"<svg[^>]*/>", svg_content):
            errors.append("Missing closing </svg> tag")

        try:
            root = ET.fromstring(svg_content.encode("utf-8"))
            if root.tag not in (f"{{{SVG_NAMESPACE}}}svg", "svg"):
                errors.append(f"Root element is <{root.tag}>, expected <svg>")
        except ET.ParseError as e:
            errors.append(f"Malformed XML: {e}")

        for index, match in enumerate(_D_ATTR_RE.finditer(svg_content)):
            if not is_valid_svg_path(match.group(2)):
                errors.append(f"Invalid path data in path {index + 1}: {match.group(2)[:50]}")

        return SvgValidation(not errors, errors)

    @staticmethod
    def optimization_stats(original_svg: str, optimized_svg: str) -> Dict[str, Any]:
        """Size and path-count comparison between two SVG documents."""
        original_size = len(original_svg.encode("utf-8"))
        optimized_size = len(optimized_svg.encode("utf-8"))
        reduction = original_size - optimized_size
        return {
            "original_size": original_size,
            "optimized_size": optimized_size,
            "size_reduction": reduction,
            "reduction_percent": (reduction / original_size * 100) if original_size else 0.0,
            "compression_ratio": (original_size / optimized_size) if optimized_size else 0.0,
            "original_paths": len(re.findall(r"<path\b", original_svg)),
            "optimized_paths": len(re.findall(r"<path\b", optimized_svg)),
        }
