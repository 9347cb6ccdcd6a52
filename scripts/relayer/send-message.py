"""Send relayer test messages between the configured chains.

Environment variables
---------------------
- ``WALLET_KEY``: Private key funding the ``sendMessage()`` transactions (required).
- ``ENV``: Config environment under ``config/``, ``testnet`` by default.
- ``CONFIG_DIR``: Explicit config directory, overrides ``ENV``.
- ``WORMHOLE_RPC_HOST``: Guardian API for ``--fetchSignedVaa``.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    WALLET_KEY=0x... python scripts/relayer/send-message.py --from 6 --to 14 --fetchSignedVaa

    # All chains to all chains
    WALLET_KEY=0x... python scripts/relayer/send-message.py --matrix
"""

from xchain_relay.cli import main

if __name__ == "__main__":
    main()
