"""ABI loading.

ABI files live in ``xchain_relay/abi/<ContractName>.json`` and carry
the compiler output ``{"abi": [...]}`` shape.
"""

import json
from functools import lru_cache
from pathlib import Path

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

#: Where packaged ABI files are
ABI_DIR = Path(__file__).parent / "abi"


@lru_cache(maxsize=None)
def get_abi_by_filename(fname: str) -> list[dict]:
    """Read a packaged ABI file.

    :param fname:
        File name, e.g. ``CoreRelayer.json``.
    """
    path = ABI_DIR / fname
    with path.open("rt") as inp:
        return json.load(inp)["abi"]


def get_deployed_contract(web3: Web3, fname: str, address: HexAddress | str) -> Contract:
    """Bind a packaged ABI to an on-chain address.

    :param fname:
        ABI file name, e.g. ``MockRelayerIntegration.json``.

    :param address:
        Contract address, any checksum casing.
    """
    abi = get_abi_by_filename(fname)
    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
