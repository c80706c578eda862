"""Read-only access to the domain/round reference data."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from .schemas import CatalogRound, DomainDefinition


@runtime_checkable
class DomainCatalog(Protocol):
    """Catalog contract consumed by the progress tracker and retry gate."""

    def get_ordered_rounds(self, domain_id: str) -> list[CatalogRound]:
        """Return the domain's rounds by ascending sequence; empty when unknown."""


class StaticDomainCatalog:
    """Catalog backed by domain definitions loaded from configuration."""

    def __init__(self, domains: Iterable[DomainDefinition | dict[str, Any]] = ()):
        self._domains: dict[str, DomainDefinition] = {}
        for domain in domains:
            definition = DomainDefinition.model_validate(domain)
            self._domains[definition.domain_id] = definition

    def get_ordered_rounds(self, domain_id: str) -> list[CatalogRound]:
        domain = self._domains.get(domain_id)
        if domain is None:
            return []
        # stable: equal sequence numbers keep their declared order
        return sorted(domain.rounds, key=lambda item: item.sequence)

    def total_rounds(self, domain_id: str) -> int:
        return len(self.get_ordered_rounds(domain_id))
