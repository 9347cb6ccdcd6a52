"""Guardian API client for signed VAAs.

After a message is published on the source chain, the Wormhole guardians
observe the ``LogMessagePublished`` event and, once a quorum has signed it,
the signed VAA becomes available from the guardian REST API::

    GET /v1/signed_vaa/{emitter_chain}/{emitter_address}/{sequence}

    {"vaaBytes": "<base64>"}

Until then the API answers HTTP 404.

This module polls the API at a fixed interval. Unlike a plain retry loop,
:py:func:`poll_signed_vaa` always returns an :py:class:`AttestationResult`
so the caller can tell a received VAA apart from a poll that gave up.

Example::

    from xchain_relay.attestation import poll_signed_vaa

    result = poll_signed_vaa(receipt["logs"][0], chain_id=2)
    if result.is_attested:
        print(result.vaa.hex())
"""

import base64
import enum
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable

import requests
from eth_abi.exceptions import DecodingError
from eth_utils import is_hex_address

from xchain_relay.config import DEFAULT_WORMHOLE_RPC_HOST
from xchain_relay.sequence import decode_log_message_published

logger = logging.getLogger(__name__)

#: How many times we ask the guardian API before giving up
DEFAULT_MAX_ATTEMPTS = 120

#: Seconds between attempts
DEFAULT_POLL_INTERVAL = 1.0

#: HTTP request timeout for one attempt
REQUEST_TIMEOUT = 30.0

#: ``(chain_id, emitter_hex, sequence) -> vaa bytes``
SignedVaaFetcher = Callable[[int, str, str], bytes]


class AttestationStatus(enum.Enum):
    """Outcome of polling for one signed VAA."""

    #: VAA received
    attested = "attested"

    #: Poll budget used up while the API had no VAA for us
    not_available = "not_available"

    #: Could not even start polling, e.g. the log was not a message log
    fatal_error = "fatal_error"


@dataclass(slots=True)
class AttestationResult:
    """Result of :py:func:`poll_signed_vaa`."""

    status: AttestationStatus

    #: Emitter chain id
    chain_id: int

    #: Attempts made against the API
    attempts: int

    #: Signed VAA bytes when ``status`` is ``attested``
    vaa: bytes | None = None

    #: 32-byte emitter address as hex, when the log could be decoded
    emitter: str | None = None

    #: Message sequence, when the log could be decoded
    sequence: int | None = None

    #: Last error seen
    error: Exception | None = None

    @property
    def is_attested(self) -> bool:
        return self.status == AttestationStatus.attested

    def __repr__(self) -> str:
        vaa_len = len(self.vaa) if self.vaa is not None else None
        return f"<AttestationResult {self.status.value} chain={self.chain_id} sequence={self.sequence} attempts={self.attempts} vaa_bytes={vaa_len}>"


def encode_emitter_address(address: str) -> str:
    """Convert an EVM address to a Wormhole emitter address.

    Emitters are 32 bytes: the 20-byte address left-padded with zeroes.

    :return:
        64 lowercase hex characters, no ``0x`` prefix.

    :raise ValueError:
        For anything that is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not is_hex_address(address):
        raise ValueError(f"Not an EVM address: {address!r}")
    return address.lower().removeprefix("0x").rjust(64, "0")


def fetch_signed_vaa(
    chain_id: int,
    emitter: str,
    sequence: str,
    api_url: str = DEFAULT_WORMHOLE_RPC_HOST,
    session: requests.Session | None = None,
) -> bytes:
    """Fetch a signed VAA once.

    :param emitter:
        Emitter address from :py:func:`encode_emitter_address`.

    :param sequence:
        Message sequence as decimal string.

    :param session:
        Reused HTTP session. A one-off request is made without one.

    :return:
        Raw VAA bytes.

    :raise requests.HTTPError:
        HTTP 404 while the guardians have not signed the message yet,
        or any other error status.
    """
    url = f"{api_url}/v1/signed_vaa/{chain_id}/{emitter}/{sequence}"
    http = session if session is not None else requests
    response = http.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    data = response.json()
    return base64.b64decode(data["vaaBytes"])


def poll_signed_vaa(
    log,
    chain_id: int,
    fetcher: SignedVaaFetcher | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    api_url: str = DEFAULT_WORMHOLE_RPC_HOST,
    sleep: Callable[[float], None] = time.sleep,
    session: requests.Session | None = None,
) -> AttestationResult:
    """Poll the guardian API until the VAA for a message log is signed.

    - At most ``max_attempts`` attempts, ``poll_interval`` seconds apart
    - Returns on the first successful fetch
    - Any fetch error counts as "not yet"; only the first one is logged with details

    :param log:
        Raw ``LogMessagePublished`` receipt log.

    :param chain_id:
        Wormhole chain id of the source chain.

    :param fetcher:
        Fetch function. Defaults to :py:func:`fetch_signed_vaa` against ``api_url``.

    :param session:
        HTTP session for the default fetcher. When not given, one session
        is opened for the attempts of this poll and closed afterwards.

    :param sleep:
        Sleep function, replaceable in tests.

    :return:
        Attested, not available or fatal error result. Never raises for fetch errors.
    """
    assert max_attempts > 0, f"Got max_attempts {max_attempts}"

    try:
        event = decode_log_message_published(log)
        emitter = encode_emitter_address(event.sender)
    except (ValueError, KeyError, DecodingError) as e:
        logger.error("Cannot poll VAA on chain %d, bad message log: %s", chain_id, e)
        return AttestationResult(status=AttestationStatus.fatal_error, chain_id=chain_id, attempts=0, error=e)

    if fetcher is None:
        if session is None:
            with requests.Session() as own_session:
                return _poll(partial(fetch_signed_vaa, api_url=api_url, session=own_session), chain_id, emitter, event.sequence, max_attempts, poll_interval, sleep)
        fetcher = partial(fetch_signed_vaa, api_url=api_url, session=session)

    return _poll(fetcher, chain_id, emitter, event.sequence, max_attempts, poll_interval, sleep)


def _poll(
    fetcher: SignedVaaFetcher,
    chain_id: int,
    emitter: str,
    sequence_number: int,
    max_attempts: int,
    poll_interval: float,
    sleep: Callable[[float], None],
) -> AttestationResult:
    sequence = str(sequence_number)
    logger.info("Polling signed VAA chain=%d emitter=%s sequence=%s, max %d attempts", chain_id, emitter, sequence, max_attempts)

    last_error = None
    for attempt in range(max_attempts):
        try:
            vaa = fetcher(chain_id, emitter, sequence)
        except Exception as e:
            last_error = e
            if attempt == 0:
                logger.info("VAA not available yet for sequence %s: %s", sequence, e)
            else:
                logger.info("Still waiting for VAA sequence %s, %d seconds", sequence, attempt)
        else:
            logger.info("Received signed VAA for chain %d sequence %s after %d attempts, %d bytes", chain_id, sequence, attempt + 1, len(vaa))
            return AttestationResult(
                status=AttestationStatus.attested,
                chain_id=chain_id,
                attempts=attempt + 1,
                vaa=vaa,
                emitter=emitter,
                sequence=sequence_number,
            )

        if attempt < max_attempts - 1:
            sleep(poll_interval)

    logger.warning("Gave up polling VAA for chain %d sequence %s after %d attempts", chain_id, sequence, max_attempts)
    return AttestationResult(
        status=AttestationStatus.not_available,
        chain_id=chain_id,
        attempts=max_attempts,
        emitter=emitter,
        sequence=sequence_number,
        error=last_error,
    )
