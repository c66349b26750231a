from typing import Any, List, Literal, Optional, Sequence


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[Any]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows; cells are converted with str().
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table, "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [_cell(h) for h in headers]
    rows = [[_cell(c) for c in row] for row in rows]

    if aligns is None:
        aligns = ["c"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def _cell(val: Any) -> str:
    # a literal pipe would split the cell
    return str(val).replace("|", "\\|")


def format_money(amount: float) -> str:
    return f"${amount:,.2f}"


def format_timestamp(ts: Optional[str]) -> str:
    """Shorten an ISO-8601 timestamp to 'YYYY-MM-DD HH:MM'; '-' when missing."""
    if not ts:
        return "-"
    date_part, _, time_part = ts.partition("T")
    if not time_part:
        return date_part
    return f"{date_part} {time_part[:5]}"


def stock_label(stock: int) -> str:
    if stock <= 0:
        return "Out of Stock"
    if stock < 10:
        return "Low Stock"
    if stock < 50:
        return "Medium Stock"
    return "In Stock"


def paginate(items: Sequence[Any], page: int, per_page: int = 5) -> List[Any]:
    """1-based page slice; out-of-range pages are clamped."""
    if per_page < 1:
        raise ValueError("per_page must be positive")
    page_cnt = max((len(items) + per_page - 1) // per_page, 1)
    page = max(1, min(page, page_cnt))
    start = (page - 1) * per_page
    return list(items[start : start + per_page])
