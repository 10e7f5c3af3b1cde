"""CREATE2 init code assembly and address prediction.

The address of a CREATE2 deployment is (EIP-1014)::

    keccak256(0xff ++ factory ++ salt ++ keccak256(init_code))[12:]

We deploy through two factories:

- The *local deployer*, a small owned contract exposing ``deploy(bytes32 salt, bytes initCode)``

- The *universal factory*, Arachnid's deterministic deployment proxy that lives at the same
  address on every EVM chain and takes raw ``salt ++ init_code`` as calldata

`See EIP-1014 <https://eips.ethereum.org/EIPS/eip-1014>`__.
"""

from typing import Any, Sequence

import eth_abi
from eth_typing import ChecksumAddress, HexAddress
from eth_utils import keccak
from hexbytes import HexBytes
from web3 import Web3

from creator_vault.abi import encode_with_signature


#: Local deployer entry point
LOCAL_DEPLOYER_DEPLOY_SIGNATURE = "deploy(bytes32,bytes)"


def make_init_code(
    bytecode: bytes,
    arg_types: Sequence[str] = (),
    args: Sequence[Any] = (),
) -> HexBytes:
    """Append ABI encoded constructor arguments to contract creation bytecode.

    :param bytecode:
        Creation bytecode from the compiler artifact

    :param arg_types:
        Constructor argument Solidity types, e.g. ``["address", "string"]``

    :return:
        Init code to be passed to a CREATE2 factory
    """
    assert isinstance(bytecode, bytes), f"Expected bytes, got {type(bytecode)}"
    assert len(bytecode) > 0, "Empty creation bytecode"
    assert len(arg_types) == len(args), f"Constructor types {arg_types} do not match args {args}"
    if not arg_types:
        return HexBytes(bytecode)
    return HexBytes(bytes(bytecode) + eth_abi.encode(list(arg_types), list(args)))


def predict_create2_address(
    factory: HexAddress | str,
    salt: bytes,
    init_code: bytes | None = None,
    init_code_hash: bytes | None = None,
) -> ChecksumAddress:
    """Compute a deterministic contract address.

    Give either ``init_code`` or its precomputed keccak ``init_code_hash``.

    :param factory:
        The contract executing CREATE2

    :param salt:
        32 bytes salt
    """
    assert len(salt) == 32, f"Salt must be 32 bytes, got {len(salt)}"
    if init_code_hash is None:
        assert init_code is not None, "Give either init_code or init_code_hash"
        init_code_hash = keccak(init_code)
    else:
        assert init_code is None, "Give only one of init_code and init_code_hash"
        assert len(init_code_hash) == 32, f"Init code hash must be 32 bytes, got {len(init_code_hash)}"

    factory_bytes = HexBytes(Web3.to_checksum_address(factory))
    preimage = b"\xff" + factory_bytes + bytes(salt) + bytes(init_code_hash)
    return Web3.to_checksum_address(keccak(preimage)[12:])


def encode_local_deployer_call(salt: bytes, init_code: bytes) -> HexBytes:
    """Calldata for ``LocalDeployer.deploy(salt, initCode)``."""
    return encode_with_signature(LOCAL_DEPLOYER_DEPLOY_SIGNATURE, [bytes(salt), bytes(init_code)])


def encode_universal_factory_call(salt: bytes, init_code: bytes) -> HexBytes:
    """Calldata for the universal factory: raw ``salt ++ init_code``."""
    assert len(salt) == 32, f"Salt must be 32 bytes, got {len(salt)}"
    return HexBytes(bytes(salt) + bytes(init_code))
