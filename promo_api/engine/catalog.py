# promo_api/engine/catalog.py
from __future__ import annotations

from typing import Iterable, Iterator

from .types import Coupon, normalize_code


class CouponCatalog:
    """Read-only, case-insensitive snapshot of coupon definitions."""

    def __init__(self, coupons: Iterable[Coupon] = ()):
        by_key: dict[str, Coupon] = {}
        for c in coupons:
            if c.key in by_key:
                raise ValueError(f"duplicate coupon code in catalog: {c.code}")
            by_key[c.key] = c
        self._by_key = by_key

    @classmethod
    def of(cls, catalog) -> "CouponCatalog":
        return catalog if isinstance(catalog, cls) else cls(catalog or ())

    def get(self, code) -> Coupon | None:
        return self._by_key.get(normalize_code(code))

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._by_key

    def __iter__(self) -> Iterator[Coupon]:
        return iter(self._by_key.values())

    def __len__(self) -> int:
        return len(self._by_key)

    def __repr__(self):
        return f"<CouponCatalog {sorted(c.code for c in self)}>"
