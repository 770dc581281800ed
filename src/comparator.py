"""Price comparison against the plan's snapshot price."""


def price_changed(new_price: float | None, snapshot_price: float | None) -> bool:
    """
    Return True if a scraped price should overwrite the catalog price.

    A missing scraped price never overwrites; prices compare to the cent.
    """
    if new_price is None:
        return False
    if snapshot_price is None:
        return True
    return round(new_price, 2) != round(snapshot_price, 2)


def is_price_drop(new_price: float | None, snapshot_price: float | None) -> bool:
    """Return True if the scraped price is below the snapshot price."""
    if new_price is None or snapshot_price is None:
        return False
    return round(new_price, 2) < round(snapshot_price, 2)
