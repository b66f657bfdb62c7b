"""Address value model shared by the tax and shipping resolvers."""

from pydantic import BaseModel


class Address(BaseModel):
    """A postal address as supplied by the caller or the address collaborator.

    Only ``country`` is mandatory; tax and shipping rules treat a missing
    state, city or postal code as "not constraining".
    """

    model_config = {"frozen": True}

    country: str
    state: str | None = None
    city: str | None = None
    postal_code: str | None = None
    street: str | None = None
    company: str | None = None


def same_text(left: str | None, right: str | None) -> bool:
    """Case-insensitive, whitespace-tolerant comparison of address parts."""
    if left is None or right is None:
        return False
    return left.strip().casefold() == right.strip().casefold()


def postcode_matches(pattern: str, postal_code: str | None) -> bool:
    """Match a configured postcode against an address.

    A trailing ``*`` turns the pattern into a prefix match (``"100*"``).
    """
    if not postal_code:
        return False
    code = postal_code.replace(" ", "").upper()
    pattern = pattern.replace(" ", "").upper()
    if pattern.endswith("*"):
        return code.startswith(pattern[:-1])
    return code == pattern
