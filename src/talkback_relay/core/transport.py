"""
Best-effort sends to connection transports.

A transport is anything with an async ``send(str | bytes)`` method, in
practice a websockets ``ServerConnection``. Every send is bounded by a
timeout so a peer that stops reading cannot hold up the caller.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Set, Tuple, Union

from websockets.exceptions import ConnectionClosed

from talkback_relay.core.types import DEFAULT_SEND_TIMEOUT
from talkback_relay.infrastructure.exceptions import ErrorCode

Message = Union[str, bytes]

# Close tasks for stalled peers; referenced until done
_closing: Set[asyncio.Task] = set()


def encode_message(message_type: str, **fields: Any) -> str:
    """Encode a control message as a JSON text frame."""
    payload: Dict[str, Any] = {"type": message_type}
    payload.update(fields)
    return json.dumps(payload)


def _close_in_background(transport: Any, identity: str, logger: logging.Logger) -> None:
    """Start closing a stalled transport without waiting for it."""
    try:
        task = asyncio.ensure_future(transport.close())
    except Exception as e:
        logger.debug(f"Could not close {identity}: {e}")
        return
    _closing.add(task)
    task.add_done_callback(_closing.discard)


async def send_safely(
    transport: Any,
    message: Message,
    identity: str,
    logger: logging.Logger,
    timeout: float = DEFAULT_SEND_TIMEOUT,
) -> bool:
    """
    Send one message, reporting failure instead of raising.

    A send that does not complete within ``timeout`` seconds is abandoned
    and the transport is closed in the background; its connection handler
    then reports the disconnect.

    Returns:
        True if the transport accepted the message
    """
    try:
        await asyncio.wait_for(transport.send(message), timeout)
        return True
    except ConnectionClosed:
        logger.debug(f"{ErrorCode.TRANSPORT_UNREACHABLE.value}: {identity}, message skipped")
    except asyncio.TimeoutError:
        logger.warning(
            f"{ErrorCode.TRANSPORT_UNREACHABLE.value}: send to {identity} "
            f"stalled for {timeout}s, closing"
        )
        _close_in_background(transport, identity, logger)
    except Exception as e:
        logger.error(f"Error sending to {identity}: {e}")
    return False


async def fan_out(
    targets: Iterable[Tuple[str, Any]],
    message: Message,
    logger: logging.Logger,
    timeout: float = DEFAULT_SEND_TIMEOUT,
) -> Dict[str, bool]:
    """
    Send the same message to several transports concurrently.

    Returns:
        Mapping of identity to delivery outcome
    """
    targets = list(targets)
    if not targets:
        return {}

    results = await asyncio.gather(
        *(
            send_safely(transport, message, identity, logger, timeout)
            for identity, transport in targets
        )
    )
    return {identity: ok for (identity, _), ok in zip(targets, results)}
