"""Chain descriptors for relayer smoke tests.

Chains are described by two JSON files in a per-environment config directory:

``chains.json``::

    {
        "chains": [
            {
                "description": "Ethereum Goerli",
                "chainId": 2,
                "rpc": "https://...",
                "wormholeAddress": "0x706abc4E45D419950511e474C7B9Ed348A4a716c"
            }
        ]
    }

``contracts.json``::

    {
        "coreRelayers": [{"chainId": 2, "address": "0x..."}],
        "relayProviders": [{"chainId": 2, "address": "0x..."}],
        "mockIntegrations": [{"chainId": 2, "address": "0x..."}]
    }

Both are merged by Wormhole chain id into :py:class:`ChainInfo` records.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from eth_typing import HexAddress

logger = logging.getLogger(__name__)

#: ``contracts.json`` key -> :py:class:`ChainInfo` field
_CONTRACT_SECTIONS: dict[str, str] = {
    "coreRelayers": "core_relayer_address",
    "relayProviders": "relay_provider_address",
    "mockIntegrations": "mock_integration_address",
}


class ChainConfigurationError(Exception):
    """Chain configuration is missing or inconsistent.

    Always raised before any transaction is sent.
    """


@dataclass(slots=True, frozen=True)
class ChainInfo:
    """One chain taking part in the relay test."""

    #: Wormhole chain id, unique across the loaded set
    chain_id: int

    #: Human readable name, e.g. ``"Ethereum Goerli"``
    description: str

    #: JSON-RPC endpoint URL
    rpc: str

    #: Wormhole core messaging contract emitting ``LogMessagePublished``
    wormhole_address: HexAddress

    #: CoreRelayer contract
    core_relayer_address: HexAddress | None = None

    #: Default relay provider registered with the CoreRelayer
    relay_provider_address: HexAddress | None = None

    #: MockRelayerIntegration contract used to send test messages
    mock_integration_address: HexAddress | None = None

    def __repr__(self) -> str:
        return f"<Chain {self.chain_id} {self.description}>"

    def require_address(self, field_name: str) -> HexAddress:
        """Get a contract address or fail with a configuration error.

        :param field_name:
            One of ``core_relayer_address``, ``relay_provider_address``, ``mock_integration_address``.
        """
        address = getattr(self, field_name)
        if not address:
            raise ChainConfigurationError(f"No {field_name} configured for chain {self.chain_id} ({self.description})")
        return address


def _read_json(path: Path) -> dict:
    if not path.exists():
        raise ChainConfigurationError(f"Config file missing: {path}")
    with path.open("rt") as inp:
        return json.load(inp)


def load_chains(config_dir: Path) -> list[ChainInfo]:
    """Load chain descriptors from a config directory.

    :param config_dir:
        Directory holding ``chains.json`` and ``contracts.json``.

    :return:
        Chains in the order they appear in ``chains.json``.

    :raise ChainConfigurationError:
        If a file is missing or a chain id appears twice.
    """
    assert isinstance(config_dir, Path), f"Expected Path, got {config_dir}"

    chain_data = _read_json(config_dir / "chains.json")
    contract_data = _read_json(config_dir / "contracts.json")

    addresses: dict[int, dict[str, str]] = {}
    for section, field_name in _CONTRACT_SECTIONS.items():
        for entry in contract_data.get(section, []):
            addresses.setdefault(int(entry["chainId"]), {})[field_name] = entry["address"]

    chains = []
    seen = set()
    for entry in chain_data["chains"]:
        chain_id = int(entry["chainId"])
        if chain_id in seen:
            raise ChainConfigurationError(f"Duplicate chainId {chain_id} in {config_dir / 'chains.json'}")
        seen.add(chain_id)
        chains.append(
            ChainInfo(
                chain_id=chain_id,
                description=entry.get("description", f"chain-{chain_id}"),
                rpc=entry["rpc"],
                wormhole_address=entry["wormholeAddress"],
                **addresses.get(chain_id, {}),
            )
        )

    logger.info("Loaded %d chains from %s: %s", len(chains), config_dir, ", ".join(str(c.chain_id) for c in chains))
    return chains


def get_chain_by_id(chains: list[ChainInfo], chain_id: int | str) -> ChainInfo:
    """Resolve a chain id given on the command line.

    :param chain_id:
        Wormhole chain id as int or decimal string.

    :raise ChainConfigurationError:
        If no loaded chain has this id.
    """
    try:
        chain_id = int(chain_id)
    except ValueError as e:
        raise ChainConfigurationError(f"chainId not found, {chain_id}") from e

    for chain in chains:
        if chain.chain_id == chain_id:
            return chain

    raise ChainConfigurationError(f"chainId not found, {chain_id}")
