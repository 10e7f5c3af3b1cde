"""ABI encode/decode helpers.

We do not carry full ABI files for the creator vault contracts.
All calls the orchestrator makes are encoded from their human readable Solidity signatures,
which keeps batch planning pure: no :py:class:`web3.Web3` instance is needed to build calldata.
"""

from typing import Any, Sequence

import eth_abi
from eth_utils import function_signature_to_4byte_selector
from hexbytes import HexBytes


#: Ethereum 0x0000000000000000000000000000000000000000 address as a string.
ZERO_ADDRESS_STR = "0x0000000000000000000000000000000000000000"


def split_signature_types(function_signature: str) -> list[str]:
    """Extract argument types from a Solidity function signature.

    Handles tuple types, so ``executeBatch((address,uint256,bytes)[])``
    gives ``["(address,uint256,bytes)[]"]``.

    :param function_signature:
        E.g. ``setMinter(address,bool)``
    """
    assert "(" in function_signature and function_signature.endswith(")"), f"Not a function signature: {function_signature}"
    args_text = function_signature[function_signature.find("(") + 1 : -1]
    if not args_text:
        return []

    types = []
    depth = 0
    current = ""
    for c in args_text:
        if c == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        current += c
    types.append(current)
    return types


def get_function_selector(function_signature: str) -> bytes:
    """Solidity function selector: first 4 bytes of keccak of the signature."""
    return function_signature_to_4byte_selector(function_signature)


def encode_with_signature(function_signature: str, args: Sequence) -> HexBytes:
    """Mimic Solidity's abi.encodeWithSignature() in Python.

    Example:

    .. code-block:: python

        payload = encode_with_signature("setMinter(address,bool)", [wrapper, True])

    :param function_signature:
        Solidity function signature that can be hashed to a selector.

        ABI will be extracted from this signature.

    :param args:
        Argument values to be encoded.
    """

    assert type(args) in (tuple, list), f"args must be a list, got {type(args)}"
    arg_types = split_signature_types(function_signature)
    assert len(arg_types) == len(args), f"{function_signature} takes {len(arg_types)} arguments, got {len(args)}"
    encoded_args = eth_abi.encode(arg_types, args)
    return HexBytes(get_function_selector(function_signature) + encoded_args)


def decode_function_args(function_signature: str, data: bytes) -> tuple:
    """Decode calldata produced by :py:func:`encode_with_signature`.

    :param data:
        Calldata including the 4 byte selector.
    """
    selector = get_function_selector(function_signature)
    assert data[0:4] == selector, f"Selector mismatch for {function_signature}: {data[0:4].hex()}"
    return eth_abi.decode(split_signature_types(function_signature), data[4:])


def decode_function_output(output_types: Sequence[str], data: bytes) -> Any:
    """Decode raw return value of a Solidity function.

    :return:
        The only value if a single output type, otherwise a tuple
    """
    decoded = eth_abi.decode(list(output_types), data)
    if len(output_types) == 1:
        return decoded[0]
    return decoded


def _hexify(s: Any):
    if type(s) in (list, tuple):
        return str([_hexify(x) for x in s])
    if isinstance(s, str):
        return s
    elif isinstance(s, bytes):
        return "0x" + s.hex()
    return str(s)


def present_solidity_args(a: list | tuple | Any) -> str:
    """Try make Solidity call args human readable.

    Make sure we display bytes as hex. Init codes can be tens of kilobytes,
    so do not pass them here for logging.
    """
    return _hexify(a)
