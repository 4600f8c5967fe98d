"""
Vectrace SVG path-data utilities.

Parsing, validation and rewriting of SVG ``d`` attributes:
- Command/argument parsing and formatting
- Grammar validation (the engine emits absolute M/L/C/Q/Z only, but any
  valid path data is accepted here)
- Relative to absolute conversion
- Redundant command removal and coordinate rounding
- Complexity scoring and same-color path merging

Usage:
    from vectrace.paths import is_valid_svg_path, round_path_coords

    assert is_valid_svg_path("M 0 0 L 10 0 Z")
    d = round_path_coords("M 0.3333333 1 L 2.5 4", precision=2)
"""

import math
import re
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

from vectrace.types import Point, VectorPath, hex_to_rgb


NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_NUMBER_RE = re.compile(NUMBER)
_SEGMENT_RE = re.compile(r"([MmLlHhVvCcSsQqTtAaZz])\s*([^MmLlHhVvCcSsQqTtAaZz]*)")
_TOKEN_RE = re.compile(rf"[\s,]*(?:([MmLlHhVvCcSsQqTtAaZz])|({NUMBER}))")

# Arguments consumed per repetition of each command
ARITY = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "T": 2, "A": 7, "Z": 0}

Segment = Tuple[str, List[float]]


# ============================================================================
# PARSING AND FORMATTING
# ============================================================================

def parse_path_data(d: str) -> List[Segment]:
    """
    Parse SVG path d attribute into segments.

    Args:
        d: Path data string

    Returns:
        List of (command, arguments) tuples
    """
    segments = []
    for match in _SEGMENT_RE.finditer(d):
        cmd = match.group(1)
        args_str = match.group(2).strip()
        args = [float(x) for x in _NUMBER_RE.findall(args_str)] if args_str else []
        segments.append((cmd, args))
    return segments


def format_number(value: float, precision: int = 6) -> str:
    """Format a coordinate with at most ``precision`` decimals, no trailing zeros."""
    if not math.isfinite(value):
        raise ValueError(f"Non-finite coordinate in path data: {value}")
    value = round(float(value), precision)
    if value == int(value):
        return str(int(value))
    return f"{value:.{precision}f}".rstrip("0").rstrip(".")


def format_path_data(segments: Sequence[Segment], precision: int = 6) -> str:
    parts = []
    for cmd, args in segments:
        if args:
            parts.append(cmd + " " + " ".join(format_number(a, precision) for a in args))
        else:
            parts.append(cmd)
    return " ".join(parts)


def _tokenize(d: str) -> Optional[List[str]]:
    d = d.strip()
    tokens = []
    pos = 0
    while pos < len(d):
        match = _TOKEN_RE.match(d, pos)
        if not match or match.end() == pos:
            return None
        tokens.append(match.group(1) or match.group(2))
        pos = match.end()
    return tokens


def is_valid_svg_path(d: str) -> bool:
    """
    Check that ``d`` is well-formed SVG path data.

    The path must start with a moveto, every command must carry a whole
    number of argument groups, arc flags must be 0 or 1, and every number
    must be finite.
    """
    if not isinstance(d, str):
        return False
    tokens = _tokenize(d)
    if not tokens or tokens[0] not in ("M", "m"):
        return False

    i = 0
    while i < len(tokens):
        cmd = tokens[i]
        arity = ARITY.get(cmd.upper())
        if arity is None:
            return False
        i += 1
        args = []
        while i < len(tokens) and tokens[i].upper() not in ARITY:
            value = float(tokens[i])
            if not math.isfinite(value):
                return False
            args.append(value)
            i += 1
        if arity == 0:
            if args:
                return False
            continue
        if not args or len(args) % arity:
            return False
        if cmd.upper() == "A":
            for k in range(0, len(args), 7):
                if args[k + 3] not in (0.0, 1.0) or args[k + 4] not in (0.0, 1.0):
                    return False
    return True


# ============================================================================
# ABSOLUTE CONVERSION
# ============================================================================

def path_to_absolute(d: str) -> str:
    """
    Convert relative commands to absolute and H/V to L.

    Implicit command repetitions are expanded, so ``m 1 1 2 2`` becomes
    ``M 1 1 L 3 3``.
    """
    return format_path_data(_absolute_segments(parse_path_data(d)))


def _absolute_segments(segments: Sequence[Segment]) -> List[Segment]:
    result = []
    cx = cy = 0.0
    start_x = start_y = 0.0

    for cmd, args in segments:
        upper = cmd.upper()
        relative = cmd != upper
        if upper == "Z":
            result.append(("Z", []))
            cx, cy = start_x, start_y
            continue

        arity = ARITY[upper]
        groups = [args[k:k + arity] for k in range(0, len(args) - arity + 1, arity)]
        for n, group in enumerate(groups):
            if upper == "M":
                x, y = group
                if relative:
                    x, y = x + cx, y + cy
                if n == 0:
                    result.append(("M", [x, y]))
                    start_x, start_y = x, y
                else:
                    result.append(("L", [x, y]))
                cx, cy = x, y
            elif upper == "L" or upper == "T":
                x, y = group
                if relative:
                    x, y = x + cx, y + cy
                result.append((upper, [x, y]))
                cx, cy = x, y
            elif upper == "H":
                x = group[0] + cx if relative else group[0]
                result.append(("L", [x, cy]))
                cx = x
            elif upper == "V":
                y = group[0] + cy if relative else group[0]
                result.append(("L", [cx, y]))
                cy = y
            elif upper in ("C", "S", "Q"):
                coords = list(group)
                if relative:
                    for k in range(0, len(coords), 2):
                        coords[k] += cx
                        coords[k + 1] += cy
                result.append((upper, coords))
                cx, cy = coords[-2], coords[-1]
            elif upper == "A":
                rx, ry, rotation, large_arc, sweep, x, y = group
                if relative:
                    x, y = x + cx, y + cy
                result.append(("A", [rx, ry, rotation, large_arc, sweep, x, y]))
                cx, cy = x, y
    return result


def path_endpoints(d: str) -> List[Point]:
    """Absolute end point of every drawing segment, in order."""
    points = []
    for cmd, args in _absolute_segments(parse_path_data(d)):
        if cmd != "Z" and len(args) >= 2:
            points.append((args[-2], args[-1]))
    return points


# ============================================================================
# OPTIMIZATION
# ============================================================================

def remove_redundant_commands(d: str) -> str:
    """
    Drop no-op commands.

    A moveto immediately followed by another moveto is dropped, as is any
    line or curve whose points all equal the current point.
    """
    segments = _absolute_segments(parse_path_data(d))
    kept: List[Segment] = []
    cx = cy = None
    start = None

    for cmd, args in segments:
        if cmd == "M":
            if kept and kept[-1][0] == "M":
                kept.pop()
            kept.append((cmd, args))
            cx, cy = args
            start = (cx, cy)
            continue
        if cmd == "Z":
            kept.append((cmd, args))
            if start is not None:
                cx, cy = start
            continue
        if cmd in ("L", "T", "C", "S", "Q"):
            points = list(zip(args[0::2], args[1::2]))
            if all(p == (cx, cy) for p in points):
                continue
        kept.append((cmd, args))
        cx, cy = args[-2], args[-1]

    # A trailing moveto draws nothing
    while kept and kept[-1][0] == "M" and len(kept) > 1:
        kept.pop()
    return format_path_data(kept)


def round_path_coords(d: str, precision: int = 2) -> str:
    """Round coordinates in path data to specified precision."""
    def round_match(m):
        return format_number(float(m.group(0)), precision)

    return _NUMBER_RE.sub(round_match, d)


def path_complexity(d: str) -> float:
    """Command count plus a tenth of the coordinate count."""
    commands = len(re.findall(r"[MmLlHhVvCcSsQqTtAaZz]", d))
    coordinates = len(_NUMBER_RE.findall(d))
    return commands + 0.1 * coordinates


def build_path(path_data: str, fill_color: str, stroke_color: Optional[str] = None,
               stroke_width: Optional[float] = None) -> VectorPath:
    return VectorPath(
        path_data=path_data,
        fill_color=fill_color,
        stroke_color=stroke_color,
        stroke_width=stroke_width,
        complexity=path_complexity(path_data),
    )


def _colors_close(a: str, b: str, tolerance: float) -> bool:
    if a == b:
        return True
    if tolerance <= 0:
        return False
    rgb_a, rgb_b = hex_to_rgb(a), hex_to_rgb(b)
    if rgb_a is None or rgb_b is None:
        return False
    return math.dist(rgb_a, rgb_b) <= tolerance


def merge_similar_paths(paths: Sequence[VectorPath], color_tolerance: float = 0.0) -> List[VectorPath]:
    """
    Concatenate paths that share paint.

    Paths merge into the first earlier path with the same stroke and a fill
    within ``color_tolerance`` (RGB distance; 0 means exact match). The
    merged path keeps the first path's paint.
    """
    groups: "OrderedDict[int, List[VectorPath]]" = OrderedDict()
    for path in paths:
        for key, members in groups.items():
            head = members[0]
            if (head.stroke_color == path.stroke_color
                    and head.stroke_width == path.stroke_width
                    and _colors_close(head.fill_color, path.fill_color, color_tolerance)):
                members.append(path)
                break
        else:
            groups[len(groups)] = [path]

    merged = []
    for members in groups.values():
        head = members[0]
        if len(members) == 1:
            merged.append(head)
            continue
        data = " ".join(p.path_data for p in members)
        merged.append(build_path(data, head.fill_color, head.stroke_color, head.stroke_width))
    return merged
