"""inkdiagram — interprets handwritten strokes drawn over a diagram as diagram edits."""

__version__ = "0.1.0"
