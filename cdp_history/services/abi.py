"""
Decoding of topic slots and DSNote data blobs.
"""

from typing import Any, Dict, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes

from cdp_history.core.errors import DecodeError
from cdp_history.services.signatures import TOPIC_SIZE, EventSignature

SLOT_SIZE = 32


def _topic_bytes(topic: Union[bytes, str]) -> bytes:
    raw = to_bytes(hexstr=topic) if isinstance(topic, str) else bytes(topic)
    if len(raw) != TOPIC_SIZE:
        raise DecodeError("topic", f"expected {TOPIC_SIZE} bytes, got {len(raw)}")
    return raw


def decode_address_topic(topic: Union[bytes, str]) -> str:
    """Low-order 20 bytes of the slot as a lowercase 0x address"""
    return "0x" + _topic_bytes(topic)[-20:].hex()


def decode_uint_topic(topic: Union[bytes, str]) -> int:
    return int.from_bytes(_topic_bytes(topic), "big")


def topic_hex(topic: Union[bytes, str]) -> str:
    return "0x" + _topic_bytes(topic).hex()


def pad_topic(value: Union[int, str]) -> str:
    """Left-pad a uint or an address into a 32-byte topic filter value"""
    if isinstance(value, int):
        return "0x" + value.to_bytes(TOPIC_SIZE, "big").hex()
    return "0x" + to_bytes(hexstr=value).rjust(TOPIC_SIZE, b"\x00").hex()


def decode_note_data(signature: EventSignature, data: bytes) -> Dict[str, Any]:
    """
    Decode the non-indexed parameters of a note log.

    The blob carries an arbitrary prefix (msg.value, ABI offsets, calldata
    length, or whatever a relaying proxy prepended) before the calldata, so
    everything up to and including the first occurrence of the function
    selector is discarded and the rest is read as fixed 32-byte slots.
    """
    params = signature.data_params
    start = data.find(signature.selector)
    if start < 0:
        raise DecodeError(signature.text, "function selector not found in log data")

    body = data[start + len(signature.selector):]
    needed = SLOT_SIZE * len(params)
    if len(body) < needed:
        raise DecodeError(
            signature.text,
            f"need {needed} bytes after selector, got {len(body)}"
        )

    try:
        values = abi_decode([p.type for p in params], body[:needed])
    except DecodingError as e:
        raise DecodeError(signature.text, str(e)) from e
    return {p.name: v for p, v in zip(params, values)}
