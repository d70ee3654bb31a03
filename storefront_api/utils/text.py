"""Small string helpers shared by models and handlers."""
import re

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """'Joe's Coffee & Tea' -> 'joe-s-coffee-tea'."""
    return _NON_SLUG.sub("-", (value or "").lower()).strip("-")


def location_slug(city: str, state: str) -> str:
    return slugify(f"{city}-{state}")
