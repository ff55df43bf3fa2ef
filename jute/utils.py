"""
Utility functions for jute.
"""

from collections import Counter

from jute.notebook import NotebookRoot


def truncate_text(text: str, max_length: int = 60) -> str:
    """Truncate text to max_length, adding ellipsis if needed."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def cell_type_label(cell_type: str) -> str:
    """Get a short label for the cell type."""
    return {"code": "py", "markdown": "md"}.get(cell_type, "raw")


def cell_preview(cell, max_length: int = 60) -> str:
    """
    First non-blank line of a cell's source, truncated for display.

    Args:
        cell: Any notebook cell
        max_length: Maximum length of the preview

    Returns:
        Preview string, empty for blank cells
    """
    for line in cell.source_text.splitlines():
        if line.strip():
            return truncate_text(line.strip(), max_length)
    return ""


def count_cells(notebook: NotebookRoot) -> dict[str, int]:
    """Count cells by type. Every type is present, possibly with 0."""
    counts = Counter(cell.cell_type for cell in notebook.cells)
    return {cell_type: counts.get(cell_type, 0) for cell_type in ("code", "markdown", "raw")}
