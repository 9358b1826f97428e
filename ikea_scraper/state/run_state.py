"""
Run-scoped mutable state: the dedup ledger and the product/page budget.

All mutation goes through RunState, which serializes it behind one lock so a
claim, a budget check and a counter increment happen as a single step.
"""
import sys
import threading
from enum import Enum
from typing import Optional, Set, Tuple

UNBOUNDED = sys.maxsize


class Admission(str, Enum):
    ADMITTED = "admitted"
    DUPLICATE = "duplicate"
    EXHAUSTED = "exhausted"


class DedupLedger:
    """Set of product ids already claimed this run. Not synchronized on its own."""

    def __init__(self):
        self._seen: Set[str] = set()

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._seen

    def try_claim(self, product_id: str) -> bool:
        if product_id in self._seen:
            return False
        self._seen.add(product_id)
        return True


class BudgetController:
    """
    Product and page ceilings. Unbounded ceilings are just very large numbers.

    Product slots are reserved when a candidate is admitted, so the remaining
    count never grows back.
    """

    def __init__(self, max_products: int = UNBOUNDED, max_pages: int = UNBOUNDED):
        self.max_products = max_products
        self.max_pages = max_pages
        self.products_reserved = 0
        self.pages_started = 0

    def remaining_products(self) -> int:
        return max(0, self.max_products - self.products_reserved)

    def remaining_pages(self, page_no: Optional[int] = None) -> int:
        remaining = self.max_pages - self.pages_started
        if page_no is not None:
            remaining = min(remaining, self.max_pages - page_no)
        return max(0, remaining)

    @property
    def exhausted(self) -> bool:
        return self.remaining_products() == 0

    def reserve_product(self) -> Optional[int]:
        if self.remaining_products() == 0:
            return None
        self.products_reserved += 1
        return self.products_reserved

    def reserve_page(self) -> Optional[int]:
        if self.pages_started >= self.max_pages:
            return None
        self.pages_started += 1
        return self.pages_started


class RunState:
    """Seen ids, budget and persisted count for one run, behind one lock."""

    def __init__(self, max_products: int = UNBOUNDED, max_pages: int = UNBOUNDED):
        self._lock = threading.Lock()
        self.ledger = DedupLedger()
        self.budget = BudgetController(max_products, max_pages)
        self._persisted = 0

    @property
    def persisted(self) -> int:
        with self._lock:
            return self._persisted

    def try_claim(self, product_id: str) -> bool:
        """True and recorded iff product_id was not claimed before."""
        with self._lock:
            return self.ledger.try_claim(product_id)

    def admit(self, product_id: str) -> Tuple[Admission, int]:
        """
        Claim an id and reserve a product slot in one step.

        Returns (ADMITTED, slot number), (DUPLICATE, 0) or (EXHAUSTED, 0).
        An exhausted budget does not claim the id.
        """
        with self._lock:
            if product_id in self.ledger:
                return Admission.DUPLICATE, 0
            if self.budget.exhausted:
                return Admission.EXHAUSTED, 0
            self.ledger.try_claim(product_id)
            return Admission.ADMITTED, self.budget.reserve_product()

    def record_persisted(self) -> int:
        """Increment the persisted count; returns the post-increment value."""
        with self._lock:
            self._persisted += 1
            return self._persisted

    def start_page(self, page_no: int) -> Optional[int]:
        """Reserve a page for traversal; None once the page ceiling is reached."""
        with self._lock:
            if page_no > self.budget.max_pages:
                return None
            return self.budget.reserve_page()

    def remaining_products(self) -> int:
        with self._lock:
            return self.budget.remaining_products()

    def remaining_pages(self, page_no: Optional[int] = None) -> int:
        with self._lock:
            return self.budget.remaining_pages(page_no)

    def can_continue(self) -> bool:
        with self._lock:
            return not self.budget.exhausted
