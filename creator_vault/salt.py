"""Deterministic CREATE2 salt derivation.

All salts are keccak256 over ``abi.encodePacked`` encodings of the inputs.
Packed encoding of fixed size types (``address``, ``uint256``, ``bytes32``)
means a field boundary cannot be moved the way a plain string join allows.

Same-chain salts depend on ``(creator_token, owner, chain_id)``.
The share token and bootstrap registry salts do not include the chain id or the creator token,
so these contracts land on the same address on every chain.
"""

from dataclasses import dataclass

from eth_abi.packed import encode_packed
from eth_typing import HexAddress
from eth_utils import keccak
from hexbytes import HexBytes
from web3 import Web3


#: Salt labels for contracts deployed through the local deployer
VAULT_SALT_LABEL = "vault"
WRAPPER_SALT_LABEL = "wrapper"
GAUGE_SALT_LABEL = "gauge"
CCA_SALT_LABEL = "cca"
ORACLE_SALT_LABEL = "oracle"

#: Version label mixed into the share token salt when no namespace is given
DEFAULT_SHARE_TOKEN_SALT_LABEL = "CreatorShareOFT:v1"

#: The bootstrap registry is a protocol singleton, one per chain at the same address
OFT_BOOTSTRAP_SALT_LABEL = "CreatorVault:OFTBootstrapRegistry:v1"


@dataclass(slots=True, frozen=True)
class SaltSet:
    """All salts needed for one deployment."""

    #: keccak256(creatorToken, owner, chainId[, namespace])
    base_salt: HexBytes

    vault_salt: HexBytes
    wrapper_salt: HexBytes
    gauge_salt: HexBytes
    cca_salt: HexBytes
    oracle_salt: HexBytes

    #: Chain-agnostic, depends on owner and the lowercased share symbol only
    share_token_salt: HexBytes

    #: Chain-agnostic protocol constant
    oft_bootstrap_salt: HexBytes


def derive_labelled_salt(base_salt: bytes, label: str) -> HexBytes:
    """keccak256(abi.encodePacked(bytes32 base, string label))"""
    assert len(base_salt) == 32, f"Base salt must be bytes32, got {len(base_salt)} bytes"
    return HexBytes(keccak(encode_packed(["bytes32", "string"], [base_salt, label])))


def derive_base_salt(
    creator_token: HexAddress | str,
    owner: HexAddress | str,
    chain_id: int,
    namespace: str | None = None,
) -> HexBytes:
    """Base salt for same-chain contracts.

    :param namespace:
        Deployment version label.

        If given, ``CreatorVault:deploy:<namespace>`` is packed after the chain id.
    """
    assert type(chain_id) == int and chain_id > 0, f"Bad chain id: {chain_id}"
    creator_token = Web3.to_checksum_address(creator_token)
    owner = Web3.to_checksum_address(owner)
    if namespace is None:
        packed = encode_packed(["address", "address", "uint256"], [creator_token, owner, chain_id])
    else:
        packed = encode_packed(
            ["address", "address", "uint256", "string"],
            [creator_token, owner, chain_id, f"CreatorVault:deploy:{namespace}"],
        )
    return HexBytes(keccak(packed))


def derive_share_token_salt(
    owner: HexAddress | str,
    share_symbol: str,
    namespace: str | None = None,
) -> HexBytes:
    """Chain-agnostic salt for the share token.

    Symbol is lowercased, so ``wsAKITA`` and ``WSakita`` collide on purpose.
    """
    assert share_symbol, "Share symbol missing"
    owner = Web3.to_checksum_address(owner)
    base = keccak(encode_packed(["address", "string"], [owner, share_symbol.lower()]))
    label = DEFAULT_SHARE_TOKEN_SALT_LABEL if namespace is None else f"CreatorShareOFT:{namespace}"
    return derive_labelled_salt(base, label)


def derive_oft_bootstrap_salt() -> HexBytes:
    """Salt of the bootstrap registry singleton."""
    return HexBytes(keccak(encode_packed(["string"], [OFT_BOOTSTRAP_SALT_LABEL])))


def derive_salts(
    creator_token: HexAddress | str,
    owner: HexAddress | str,
    chain_id: int,
    share_symbol: str,
    namespace: str | None = None,
) -> SaltSet:
    """Derive every salt of a deployment.

    Pure function. Never fails for well-formed addresses.
    """
    base_salt = derive_base_salt(creator_token, owner, chain_id, namespace)
    return SaltSet(
        base_salt=base_salt,
        vault_salt=derive_labelled_salt(base_salt, VAULT_SALT_LABEL),
        wrapper_salt=derive_labelled_salt(base_salt, WRAPPER_SALT_LABEL),
        gauge_salt=derive_labelled_salt(base_salt, GAUGE_SALT_LABEL),
        cca_salt=derive_labelled_salt(base_salt, CCA_SALT_LABEL),
        oracle_salt=derive_labelled_salt(base_salt, ORACLE_SALT_LABEL),
        share_token_salt=derive_share_token_salt(owner, share_symbol, namespace),
        oft_bootstrap_salt=derive_oft_bootstrap_salt(),
    )
