import math
from typing import Dict, List, Optional, Sequence, Set

PAGE_SIZE = 6

SEARCH_FIELDS = ("name", "title", "customer_name", "message")

# Dashboard tabs and the table each one lists.
TABS: Dict[str, Optional[str]] = {
    "overview": None,
    "menu": "products",
    "orders": "orders",
    "team": "team_members",
    "features": "features",
    "feedbacks": "feedbacks",
}


def matches(record, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    for name in SEARCH_FIELDS:
        value = getattr(record, name, None)
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def filter_records(records: Sequence, query: str) -> List:
    return [record for record in records if matches(record, query)]


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(total / page_size)


class ListView:
    """Search, pagination and bulk selection for the active dashboard tab."""

    def __init__(self, page_size: int = PAGE_SIZE):
        self.page_size = page_size
        self.active_tab = "overview"
        self.query = ""
        self.page = 1
        self.selected: Set[int] = set()

    @property
    def table(self) -> Optional[str]:
        return TABS[self.active_tab]

    def switch_tab(self, tab: str):
        if tab not in TABS:
            raise KeyError(tab)
        self.active_tab = tab
        self.query = ""
        self.page = 1
        self.selected.clear()

    def search(self, query: str):
        query = (query or "").strip()
        if query == self.query:
            return
        self.query = query
        self.page = 1
        # A row hidden by the new filter must not stay in a bulk delete.
        self.selected.clear()

    def toggle(self, record_id: int):
        if record_id in self.selected:
            self.selected.discard(record_id)
        else:
            self.selected.add(record_id)

    def clear_selection(self):
        self.selected.clear()

    def filtered(self, records: Sequence) -> List:
        return filter_records(records, self.query)

    def page_count(self, records: Sequence) -> int:
        return page_count(len(self.filtered(records)), self.page_size)

    def clamp_page(self, records: Sequence):
        """Pull the page back inside the collection after it shrank."""
        self.page = max(1, min(self.page, self.page_count(records)))

    def visible(self, records: Sequence) -> List:
        self.clamp_page(records)
        rows = self.filtered(records)
        start = (self.page - 1) * self.page_size
        return rows[start:start + self.page_size]

    def has_prev(self) -> bool:
        return self.page > 1

    def has_next(self, records: Sequence) -> bool:
        self.clamp_page(records)
        return self.page < self.page_count(records)

    def prev_page(self):
        if self.has_prev():
            self.page -= 1

    def next_page(self, records: Sequence):
        if self.has_next(records):
            self.page += 1
