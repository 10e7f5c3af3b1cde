"""Chain names and block explorer links.

Used to pick ``JSON_RPC_<CHAIN>`` environment variables
and to render explorer links in deployment reports.
"""

from typing import Optional

from eth_typing import HexAddress


#: Manually maintained shorthand names for EVM chains where creator vaults may live
CHAIN_NAMES = {
    1: "Ethereum",
    10: "Optimism",
    56: "Binance",
    137: "Polygon",
    8453: "Base",
    84532: "Base_Sepolia",
    42161: "Arbitrum",
    421614: "Arbitrum_Sepolia",
    43114: "Avalanche",
    130: "Unichain",
    7777777: "Zora",
    # Anvil / Hardhat default
    31337: "Anvil",
}


#: Block explorer per chain
CHAIN_EXPLORERS = {
    1: "https://etherscan.io",
    10: "https://optimistic.etherscan.io",
    56: "https://bscscan.com",
    137: "https://polygonscan.com",
    8453: "https://basescan.org",
    84532: "https://sepolia.basescan.org",
    42161: "https://arbiscan.io",
    421614: "https://sepolia.arbiscan.io",
    43114: "https://snowscan.xyz",
    130: "https://explorer.unichain.org",
    7777777: "https://zora.superscan.network",
}


def get_chain_name(chain_id: int) -> str:
    """Translate Ethereum chain id to its name."""
    name = CHAIN_NAMES.get(chain_id)
    if name:
        return name

    return f"<Unknown chain, id {chain_id}>"


def get_chain_id_by_name(name: str) -> Optional[int]:
    """Get chain id by its name.

    :param name:
        Case-insensitive chain name, e.g. "Base", "base_sepolia"

    :return:
        Chain id or None if not found
    """
    name_lower = name.lower()
    for chain_id, chain_name in CHAIN_NAMES.items():
        if chain_name.lower() == name_lower:
            return chain_id
    return None


def get_explorer_url(chain_id: int) -> str | None:
    assert type(chain_id) is int, f"Chain ID must be an integer, got {type(chain_id)}"
    return CHAIN_EXPLORERS.get(chain_id)


def get_explorer_address_link(chain_id: int, address: HexAddress | str) -> str | None:
    """Get the explorer link for a contract.

    :return:
        None if we do not know an explorer for this chain
    """
    url = get_explorer_url(chain_id)
    if url is None:
        return None
    return f"{url}/address/{address}"


def get_explorer_tx_link(chain_id: int, tx_hash: str) -> str | None:
    """Get the explorer link for a transaction hash.

    :return:
        None if we do not know an explorer for this chain
    """
    url = get_explorer_url(chain_id)
    if url is None:
        return None
    if not tx_hash.startswith("0x"):
        tx_hash = "0x" + tx_hash
    return f"{url}/tx/{tx_hash}"
