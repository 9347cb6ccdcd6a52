"""Run configuration from environment variables.

Environment variables
---------------------

``ENV``
    Config environment name, selects ``config/<ENV>/``. Defaults to ``testnet``.

``CONFIG_DIR``
    Explicit directory holding ``chains.json`` and ``contracts.json``.
    Overrides ``ENV``.

``WALLET_KEY``
    Private key used to sign the ``sendMessage()`` transactions. Required.

``WORMHOLE_RPC_HOST``
    Guardian REST API base URL for fetching signed VAAs.

``LOG_LEVEL``
    Console logging level. Defaults to ``info``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from xchain_relay.chain import ChainConfigurationError

#: Guardian API used when ``WORMHOLE_RPC_HOST`` is not set
DEFAULT_WORMHOLE_RPC_HOST = "https://wormhole-v2-testnet-api.certus.one"

#: Environment used when ``ENV`` is not set
DEFAULT_ENV = "testnet"


@dataclass(slots=True)
class RelayTestConfig:
    """Settings for one smoke test run."""

    #: Environment name, e.g. ``testnet`` or ``tilt``
    env: str

    #: Directory with ``chains.json`` and ``contracts.json``
    config_dir: Path

    #: Hex private key signing source chain transactions
    private_key: str

    #: Guardian REST API base URL
    wormhole_rpc_host: str = DEFAULT_WORMHOLE_RPC_HOST

    #: Console log level name
    log_level: str = "info"

    def __repr__(self) -> str:
        # Never print the key
        return f"<RelayTestConfig env={self.env} config_dir={self.config_dir} wormhole_rpc_host={self.wormhole_rpc_host}>"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RelayTestConfig":
        """Read configuration from environment variables.

        :param environ:
            Environment mapping. Defaults to :py:data:`os.environ`.

        :raise ChainConfigurationError:
            If ``WALLET_KEY`` is missing.
        """
        if environ is None:
            environ = os.environ

        env = environ.get("ENV", DEFAULT_ENV)

        config_dir = environ.get("CONFIG_DIR")
        config_dir = Path(config_dir) if config_dir else Path("config") / env

        private_key = environ.get("WALLET_KEY")
        if not private_key:
            raise ChainConfigurationError("WALLET_KEY environment variable is required to sign sendMessage() transactions")

        return cls(
            env=env,
            config_dir=config_dir,
            private_key=private_key,
            wormhole_rpc_host=environ.get("WORMHOLE_RPC_HOST", DEFAULT_WORMHOLE_RPC_HOST).rstrip("/"),
            log_level=environ.get("LOG_LEVEL", "info"),
        )
