"""Protocol adapter registry."""

import logging
from typing import TYPE_CHECKING

from defi_portfolio.core.models import ProtocolCategory
from defi_portfolio.types import ChainId

if TYPE_CHECKING:
    from defi_portfolio.protocols.base import ProtocolAdapter

logger = logging.getLogger(__name__)


class ProtocolRegistry:
    """
    Catalog of protocol adapters keyed by protocol id.

    Build one at startup (see ``build_default_protocol_registry``) and share
    it with the aggregator and the yield analyzer. Registering an adapter
    whose id is already present replaces the previous one.

    """

    def __init__(self) -> None:
        self._adapters: dict[str, "ProtocolAdapter"] = {}

    def register_adapter(self, adapter: "ProtocolAdapter") -> None:
        """
        Register a protocol adapter.

        Parameters
        ----------
        adapter : ProtocolAdapter
            Adapter instance; its ``protocol.id`` is the registry key

        """
        protocol_id = adapter.protocol.id
        if protocol_id in self._adapters:
            logger.debug("Replacing adapter for %s", protocol_id)
        self._adapters[protocol_id] = adapter

    def get_adapter(self, protocol_id: str) -> "ProtocolAdapter | None":
        return self._adapters.get(protocol_id)

    def get_all_adapters(self) -> list["ProtocolAdapter"]:
        return list(self._adapters.values())

    def get_adapters_for_chain(self, chain_id: ChainId) -> list["ProtocolAdapter"]:
        """
        Get all adapters that support a specific chain.

        Parameters
        ----------
        chain_id : ChainId
            Chain id

        Returns
        -------
        list[ProtocolAdapter]
            Adapters whose ``supported_chains`` contains the chain

        """
        return [adapter for adapter in self._adapters.values() if chain_id in adapter.supported_chains]

    def get_adapters_by_category(self, category: ProtocolCategory | str) -> list["ProtocolAdapter"]:
        """
        Get all adapters in a protocol category.

        Parameters
        ----------
        category : ProtocolCategory | str
            Category, as enum member or raw value (e.g., 'lending')

        Returns
        -------
        list[ProtocolAdapter]
            Matching adapters (empty for an unknown category)

        """
        return [adapter for adapter in self._adapters.values() if adapter.protocol.category == category]
