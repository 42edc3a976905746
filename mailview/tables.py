"""
Layout-table classifier and unwrapper.

Marketing email is built out of nested <table> elements used purely for
positioning. Those are flattened into <div> blocks so the Markdown converter
sees paragraphs; tables that carry real data are kept as tables.

Classification is a decision list, first match wins:

1. role="presentation"                                  -> layout
2. width 100% (attribute or style), or 500-800px fixed   -> layout
3. cellpadding / cellspacing present                     -> layout
4. <caption>                                             -> data
5. <th> and 2+ columns                                   -> data
6. 0-1 columns                                           -> layout
7. exactly 2 columns                                     -> layout
8. 3+ columns: block element in a first-row cell         -> layout
               single row                                -> layout
               otherwise                                 -> data

Tables are processed innermost first. A pass handles every table that has no
undecided table inside it, so outer wrappers are reclassified once their
contents have been flattened.
"""

import logging
import re
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field

from ._html import parse_html, serialize
from .models import TableKind

logger = logging.getLogger(__name__)

# Marks a table already classified as data. Removed by the sanitizer's
# attribute pass along with every other data-* attribute.
DECIDED_ATTR = "data-mailview-table"

STRUCTURAL_TAGS = [
    "table", "div", "ul", "ol", "blockquote", "center",
    "section", "article", "header", "footer", "nav", "aside",
]

_STYLE_WIDTH_RE = re.compile(r"(?<![\w-])width\s*:\s*([\d.]+)\s*(%|px)?", re.IGNORECASE)
_ATTR_WIDTH_RE = re.compile(r"^\s*([\d.]+)\s*(%|px)?\s*$", re.IGNORECASE)


class LayoutPolicy(BaseModel):
    """Tunable thresholds for the table heuristic."""

    model_config = ConfigDict(frozen=True)

    min_body_width: int = Field(default=500, ge=0)  # Typical email body width band
    max_body_width: int = Field(default=800, ge=0)
    max_passes: int = Field(default=50, ge=1)  # Safety cap for nested tables


# =============================================================================
# Table structure helpers
# =============================================================================

def _owned(table: Tag, names: Union[str, List[str]]) -> List[Tag]:
    """Descendants named `names` whose nearest enclosing table is `table`."""
    return [el for el in table.find_all(names) if el.find_parent("table") is table]


def table_rows(table: Tag) -> List[Tag]:
    return _owned(table, "tr")


def row_cells(row: Tag) -> List[Tag]:
    return [cell for cell in row.find_all(["td", "th"]) if cell.find_parent("tr") is row]


def _span(cell: Tag) -> int:
    try:
        return max(1, int(str(cell.get("colspan", "1")).strip()))
    except ValueError:
        return 1


def row_width(row: Tag) -> int:
    return sum(_span(cell) for cell in row_cells(row))


def column_count(table: Tag) -> int:
    return max((row_width(row) for row in table_rows(table)), default=0)


def _has_body_width(table: Tag, policy: LayoutPolicy) -> bool:
    candidates = []
    attr = table.get("width")
    if attr:
        match = _ATTR_WIDTH_RE.match(str(attr))
        if match:
            candidates.append((match.group(1), match.group(2)))
    for match in _STYLE_WIDTH_RE.finditer(table.get("style") or ""):
        candidates.append((match.group(1), match.group(2)))

    for number, unit in candidates:
        try:
            value = float(number)
        except ValueError:
            continue
        if unit == "%":
            if value == 100:
                return True
        elif policy.min_body_width <= value <= policy.max_body_width:
            return True
    return False


# =============================================================================
# Classification
# =============================================================================

def classify_table(table: Tag, policy: Optional[LayoutPolicy] = None) -> TableKind:
    """Decide whether a <table> is layout scaffolding or tabular data."""
    policy = policy or LayoutPolicy()

    if str(table.get("role") or "").strip().lower() == "presentation":
        return TableKind.LAYOUT
    if _has_body_width(table, policy):
        return TableKind.LAYOUT
    if table.has_attr("cellpadding") or table.has_attr("cellspacing"):
        return TableKind.LAYOUT
    if _owned(table, "caption"):
        return TableKind.DATA

    rows = table_rows(table)
    columns = column_count(table)
    has_header = bool(_owned(table, "th"))

    if has_header and columns >= 2:
        return TableKind.DATA
    if columns <= 1:
        return TableKind.LAYOUT
    if columns == 2:
        return TableKind.LAYOUT

    first_row = rows[0]
    if any(cell.find(STRUCTURAL_TAGS) for cell in row_cells(first_row)):
        return TableKind.LAYOUT
    if len(rows) <= 1:
        return TableKind.LAYOUT
    return TableKind.DATA


# =============================================================================
# Unwrapping
# =============================================================================

def _flatten(table: Tag) -> None:
    """Turn a layout table into nested <div>s, keeping content and order."""
    for element in _owned(table, ["colgroup", "col"]):
        element.decompose()
    for section in _owned(table, ["thead", "tbody", "tfoot"]):
        section.unwrap()
    for cell in _owned(table, ["td", "th"]):
        cell.name = "div"
        cell.attrs = {}
    for row in _owned(table, "tr"):
        row.name = "div"
        row.attrs = {}
    table.name = "div"
    table.attrs = {}


def _is_innermost(table: Tag) -> bool:
    return all(inner.has_attr(DECIDED_ATTR) for inner in table.find_all("table"))


def unwrap_tables_in_tree(soup: BeautifulSoup, policy: Optional[LayoutPolicy] = None) -> int:
    """Flatten every layout table in `soup` in place. Returns how many were flattened."""
    policy = policy or LayoutPolicy()
    flattened = 0

    for pass_number in range(1, policy.max_passes + 1):
        changed = False
        for table in soup.find_all("table"):
            if table.has_attr(DECIDED_ATTR) or not _is_innermost(table):
                continue
            if classify_table(table, policy) is TableKind.DATA:
                table[DECIDED_ATTR] = TableKind.DATA.value
            else:
                _flatten(table)
                flattened += 1
            changed = True
        if not changed:
            logger.debug(f"Flattened {flattened} layout tables in {pass_number - 1} passes")
            return flattened

    undecided = [table for table in soup.find_all("table") if not table.has_attr(DECIDED_ATTR)]
    if undecided:
        logger.warning(
            f"Table unwrapping stopped at the {policy.max_passes}-pass cap with {len(undecided)} tables undecided"
        )
    return flattened


def unwrap_layout_tables(html: str, policy: Optional[LayoutPolicy] = None) -> str:
    """String-in/string-out form of `unwrap_tables_in_tree`."""
    if not html:
        return ""
    soup = parse_html(html)
    unwrap_tables_in_tree(soup, policy)
    for table in soup.find_all(attrs={DECIDED_ATTR: True}):
        del table[DECIDED_ATTR]
    return serialize(soup)
