"""Command line driver for relayer message tests.

Usage::

    # First configured chain to the second
    xchain-relay-send-message

    # One explicit pair, by Wormhole chain id
    xchain-relay-send-message --from 2 --to 6

    # Every chain sends to chain 0, chain 0 sends to the last chain
    xchain-relay-send-message --per-chain

    # Every chain sends to every chain, itself included
    xchain-relay-send-message --matrix

Add ``--fetchSignedVaa`` anywhere to wait for the signed VAA of each message.

Arguments are matched as fixed patterns. Anything not matching a pattern
runs the default first-to-second chain send. Chain ids after ``--from`` and
``--to`` that are not configured, numeric or not, abort the run before any
transaction is sent.

See :py:mod:`xchain_relay.config` for the environment variables.
"""

import enum
import logging
import sys
from dataclasses import dataclass

import requests
from tabulate import tabulate
from web3 import Web3

from xchain_relay.chain import ChainConfigurationError, ChainInfo, get_chain_by_id, load_chains
from xchain_relay.config import RelayTestConfig
from xchain_relay.contracts import create_signing_web3
from xchain_relay.sender import SendResult, send_message
from xchain_relay.utils import setup_console_logging

logger = logging.getLogger(__name__)

#: Flag enabling VAA polling, accepted in any position
FETCH_SIGNED_VAA_FLAG = "--fetchSignedVaa"


class RunMode(enum.Enum):
    """Which chain pairs a run sends between."""

    pair = "pair"
    per_chain = "per_chain"
    matrix = "matrix"
    default = "default"


@dataclass(slots=True, frozen=True)
class RunCommand:
    """Parsed command line."""

    mode: RunMode

    #: Source chain id in ``pair`` mode, as given when not an integer
    from_chain_id: int | str | None = None

    #: Target chain id in ``pair`` mode, as given when not an integer
    to_chain_id: int | str | None = None

    #: Poll guardian API after each send
    fetch_signed_vaa: bool = False


def _as_chain_id(value: str) -> int | str:
    try:
        return int(value)
    except ValueError:
        # Left for get_chain_by_id() to reject
        return value


def _parse_pair(args: list[str]) -> tuple[int | str, int | str] | None:
    if len(args) < 4:
        return None

    if args[0] == "--from" and args[2] == "--to":
        from_id, to_id = args[1], args[3]
    elif args[0] == "--to" and args[2] == "--from":
        from_id, to_id = args[3], args[1]
    else:
        return None

    return _as_chain_id(from_id), _as_chain_id(to_id)


def parse_command(argv: list[str]) -> RunCommand:
    """Turn process arguments into a :py:class:`RunCommand`.

    :param argv:
        Arguments without the program name, i.e. ``sys.argv[1:]``.
    """
    fetch_signed_vaa = FETCH_SIGNED_VAA_FLAG in argv
    args = [a for a in argv if a != FETCH_SIGNED_VAA_FLAG]

    pair = _parse_pair(args)
    if pair:
        return RunCommand(mode=RunMode.pair, from_chain_id=pair[0], to_chain_id=pair[1], fetch_signed_vaa=fetch_signed_vaa)

    if args and args[0] == "--per-chain":
        return RunCommand(mode=RunMode.per_chain, fetch_signed_vaa=fetch_signed_vaa)

    if args and args[0] == "--matrix":
        return RunCommand(mode=RunMode.matrix, fetch_signed_vaa=fetch_signed_vaa)

    return RunCommand(mode=RunMode.default, fetch_signed_vaa=fetch_signed_vaa)


def plan_chain_pairs(command: RunCommand, chains: list[ChainInfo]) -> list[tuple[ChainInfo, ChainInfo]]:
    """Resolve which ``(source, target)`` sends a command makes.

    All chain lookups happen here, before anything touches the network.

    :raise ChainConfigurationError:
        Unknown chain id, or not enough chains for the mode.
    """
    match command.mode:
        case RunMode.pair:
            return [(get_chain_by_id(chains, command.from_chain_id), get_chain_by_id(chains, command.to_chain_id))]
        case RunMode.per_chain:
            if not chains:
                raise ChainConfigurationError("No chains configured")
            return [(chain, chains[-1] if i == 0 else chains[0]) for i, chain in enumerate(chains)]
        case RunMode.matrix:
            if not chains:
                raise ChainConfigurationError("No chains configured")
            return [(source, target) for source in chains for target in chains]
        case RunMode.default:
            if len(chains) < 2:
                raise ChainConfigurationError(f"Default run needs at least two chains, got {len(chains)}")
            return [(chains[0], chains[1])]
        case _:
            raise AssertionError(f"Unknown mode {command.mode}")


def run(command: RunCommand, chains: list[ChainInfo], config: RelayTestConfig, web3_factory=create_signing_web3) -> list[SendResult]:
    """Send all messages a command asks for, one after another.

    One guardian API HTTP session is shared by all sends of the run.

    :param web3_factory:
        ``(chain, private_key) -> Web3``, called once per source chain.

    :return:
        Send results in send order.
    """
    pairs = plan_chain_pairs(command, chains)
    logger.info("Run mode %s, %d sends, fetch signed VAA: %s", command.mode.value, len(pairs), command.fetch_signed_vaa)

    connections: dict[int, Web3] = {}
    results = []
    with requests.Session() as session:
        for source, target in pairs:
            if source.chain_id not in connections:
                connections[source.chain_id] = web3_factory(source, config.private_key)

            results.append(
                send_message(
                    connections[source.chain_id],
                    source,
                    target,
                    fetch_signed_vaa=command.fetch_signed_vaa,
                    api_url=config.wormhole_rpc_host,
                    session=session,
                )
            )
    return results


def format_summary(results: list[SendResult]) -> str:
    """Render send results as a table."""
    rows = []
    for r in results:
        if r.attestations:
            attested = sum(1 for a in r.attestations if a.is_attested)
            vaas = f"{attested}/{len(r.attestations)}"
        else:
            vaas = "-"
        rows.append([r.source_chain_id, r.target_chain_id, r.tx_hash, ", ".join(str(s) for s in r.sequences), vaas])
    return tabulate(rows, headers=["From", "To", "Tx hash", "Sequences", "Signed VAAs"], tablefmt="simple")


def main(argv: list[str] | None = None):
    if argv is None:
        argv = sys.argv[1:]

    config = RelayTestConfig.from_env()
    setup_console_logging(default_log_level=config.log_level)

    logger.info("Arguments: %s", argv)
    command = parse_command(argv)
    chains = load_chains(config.config_dir)

    print("Start!")
    results = run(command, chains, config)
    print(format_summary(results))
    print("Done!")


if __name__ == "__main__":
    main()
