"""Authenticated caller, as a tagged variant.

Services dispatch on the variant with ``match`` instead of comparing role
strings. Identity itself is issued elsewhere; the core trusts these values
and layers its own ownership checks on top.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CustomerPrincipal:
    id: str


@dataclass(frozen=True)
class ProviderPrincipal:
    id: str


@dataclass(frozen=True)
class AdminPrincipal:
    id: str


Principal = CustomerPrincipal | ProviderPrincipal | AdminPrincipal
