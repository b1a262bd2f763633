"""Strokes, element positions and gesture findings → the user message text."""

from __future__ import annotations

import math
from collections.abc import Sequence

from inkdiagram.models.detection import EnclosureDetection, GestureHints, XMarkDetection
from inkdiagram.models.strokes import ElementPosition, Stroke
from inkdiagram.utils.geometry import as_points, bbox, distance

# Start and end closer than this read as a closed shape
_CLOSED_SHAPE_GAP = 50.0

NO_POSITIONS = "(no element positions available)"

IMAGE_PREFIX = """The image above shows the current diagram with the user's handwritten strokes (purple lines) drawn on top.

Interpret the handwriting and update the diagram:
- Read any handwritten text
- Work out the intent of any shapes (boxes, arrows, ...)
- If an X is drawn over an element, delete that element

"""

_READING_TIPS = """## Interpretation tips
- Compare stroke coordinates with element positions to decide which element a stroke acts on
- A stroke near an element is probably related to it
- A line joining two elements most likely means a link (arrow)
- **An X drawn over an element means: delete that element**
- **A closed shape around elements means: group them**

Interpret these strokes and update the Mermaid diagram."""


def _round(v: float) -> int:
    """Round half up, as coordinates are shown to the model."""
    return math.floor(v + 0.5)


def _num(v: float) -> int | float:
    return int(v) if float(v).is_integer() else v


def describe_stroke(index: int, stroke: Stroke) -> str:
    if stroke.is_degenerate:
        return f"Stroke {index + 1}: invalid data"

    p = stroke.points
    xmin, ymin, xmax, ymax = bbox(as_points(p))
    width = xmax - xmin
    height = ymax - ymin
    closed = distance(p[0], p[1], p[-2], p[-1]) < _CLOSED_SHAPE_GAP
    aspect = width / (height or 1)

    return (
        f"Stroke {index + 1}:\n"
        f"  - Points: {stroke.point_count}\n"
        f"  - Range: ({_round(xmin)}, {_round(ymin)}) to ({_round(xmax)}, {_round(ymax)})\n"
        f"  - Center: ({_round((xmin + xmax) / 2)}, {_round((ymin + ymax) / 2)})\n"
        f"  - Size: {_round(width)} x {_round(height)}\n"
        f"  - Closed shape: {'yes' if closed else 'no'}\n"
        f"  - Aspect ratio: {aspect:.2f}"
    )


def describe_strokes(strokes: Sequence[Stroke]) -> str:
    return "\n\n".join(describe_stroke(i, s) for i, s in enumerate(strokes))


def describe_positions(positions: Sequence[ElementPosition] | None) -> str:
    if not positions:
        return NO_POSITIONS
    return "\n".join(
        f'- Element "{el.label}" (ID: {el.id}): '
        f"position=({_num(el.x)}, {_num(el.y)}), "
        f"size={_num(el.width)}x{_num(el.height)}, "
        f"center=({_num(el.center_x)}, {_num(el.center_y)})"
        for el in positions
    )


def describe_x_mark(x_mark: XMarkDetection) -> str:
    target = (
        f'delete "{x_mark.target_element_id}"'
        if x_mark.target_element_id
        else "not identified (decide from the position)"
    )
    return (
        "## Crossing-out (X) detected\n"
        f"- X center: ({_round(x_mark.center_x)}, {_round(x_mark.center_y)})\n"
        f"- Target element: {target}\n\n"
        "**Important**: delete the crossed-out element and its links."
    )


def describe_enclosure(enclosure: EnclosureDetection) -> str:
    b = enclosure.bounds
    members = ", ".join(f'"{el_id}"' for el_id in enclosure.enclosed_element_ids) or "none"
    return (
        "## Enclosure detected\n"
        f"- Enclosure range: ({_round(b.min_x)}, {_round(b.min_y)}) to ({_round(b.max_x)}, {_round(b.max_y)})\n"
        f"- Enclosure center: ({_round(b.center_x)}, {_round(b.center_y)})\n"
        f"- Enclosed elements: {members}\n\n"
        "**Important**: group the enclosed elements together.\n"
        "- Move the enclosed elements into one grouping block\n"
        "- Infer a title from their contents, or leave it blank\n"
        "- Keep existing links, including links to elements outside the group"
    )


def build_user_message(
    strokes: Sequence[Stroke],
    current_diagram_text: str,
    element_positions: Sequence[ElementPosition] | None = None,
    hint: str | None = None,
    gestures: GestureHints | None = None,
    simplified: bool = False,
) -> str:
    """Text part of the user turn."""
    heading = f"{len(strokes)} strokes"
    if simplified:
        heading += ", simplified to fit the request size"

    sections = [
        f"Current Mermaid code:\n```mermaid\n{current_diagram_text}\n```",
        f"## Position of each element in the current diagram (pixels):\n{describe_positions(element_positions)}",
        f"## Handwritten stroke data ({heading}):\n{describe_strokes(strokes)}",
    ]
    if gestures and gestures.x_mark:
        sections.append(describe_x_mark(gestures.x_mark))
    if gestures and gestures.enclosure:
        sections.append(describe_enclosure(gestures.enclosure))
    if hint:
        sections.append(f"## Note from the user: {hint}")
    sections.append(_READING_TIPS)
    return "\n\n".join(sections)
