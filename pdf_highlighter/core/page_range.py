from typing import List, Optional, Union

def parse_page_range(total_pages: int, page_range: Optional[str]) -> List[int]:
    """Return zero-based page indices for None(all), "first", "last", "N" or "S-E"."""
    if total_pages <= 0:
        return []
    if page_range is None or not str(page_range).strip():
        return list(range(total_pages))

    pr = str(page_range).strip().lower()
    if "-" in pr:
        s, e = pr.split("-", 1)
        s_i = int(s) if s else 1
        e_i = int(e) if e else total_pages
        if s_i < 1 or e_i < s_i or s_i > total_pages:
            raise ValueError(f"Invalid page range: {page_range}")
        return list(range(s_i - 1, min(e_i, total_pages)))
    return [parse_page(total_pages, pr)]


def parse_page(total_pages: int, page: Union[int, str]) -> int:
    """One page ("first", "last" or 1-based number) -> zero-based index."""
    p = str(page).strip().lower()
    if p == "first":
        return 0
    if p == "last":
        return total_pages - 1
    n = int(p)
    if n < 1 or n > total_pages:
        raise ValueError(f"Page {n} out of range (1-{total_pages})")
    return n - 1
