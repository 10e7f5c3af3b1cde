"""Load contract creation bytecode from compiler artifacts.

Supported inputs

- Foundry ``out/`` directory: ``out/CreatorOVault.sol/CreatorOVault.json``
  where ``bytecode`` is a dict with an ``object`` key

- Hardhat or solc style artifacts where ``bytecode`` is a hex string

- A flat JSON file mapping contract names to bytecode hex strings (or to artifacts as above)
"""

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path

from hexbytes import HexBytes


logger = logging.getLogger(__name__)


#: Dataclass field -> Solidity contract name
CONTRACT_NAMES = {
    "vault": "CreatorOVault",
    "wrapper": "CreatorOVaultWrapper",
    "share_token": "CreatorShareOFT",
    "gauge_controller": "CreatorGaugeController",
    "cca_strategy": "CCALaunchStrategy",
    "oracle": "CreatorOracle",
    "oft_bootstrap_registry": "OFTBootstrapRegistry",
}


class BytecodeMissing(Exception):
    """Artifact did not contain usable creation bytecode."""


@dataclass(slots=True, frozen=True)
class DeployBytecode:
    """Creation bytecode of every contract the orchestrator may deploy.

    Bytecode must be linked: library placeholders are not supported.
    """

    vault: HexBytes
    wrapper: HexBytes
    share_token: HexBytes
    gauge_controller: HexBytes
    cca_strategy: HexBytes
    oracle: HexBytes
    oft_bootstrap_registry: HexBytes

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            assert isinstance(value, bytes), f"{f.name}: expected bytes, got {type(value)}"
            if len(value) == 0:
                raise BytecodeMissing(f"Empty creation bytecode for {CONTRACT_NAMES[f.name]}")


def extract_bytecode(artifact: dict | str, name: str = "") -> HexBytes:
    """Get creation bytecode from a single compiler artifact.

    :param artifact:
        Parsed artifact JSON or a bare hex string

    :param name:
        Contract name for error messages
    """
    if isinstance(artifact, str):
        bytecode = artifact
    else:
        bytecode = artifact.get("bytecode")
        if type(bytecode) == dict:
            # Sol 0.8 / Forge?
            # Contains keys object, sourceMap, linkReferences
            bytecode = bytecode.get("object")

    if not bytecode:
        raise BytecodeMissing(f"No bytecode in artifact for {name}")

    if "__$" in bytecode:
        raise BytecodeMissing(f"Bytecode for {name} has unlinked library placeholders")

    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    bytecode = HexBytes(bytecode)
    if len(bytecode) == 0:
        raise BytecodeMissing(f"Empty bytecode in artifact for {name}")

    return bytecode


def load_deploy_bytecode(path: Path | str) -> DeployBytecode:
    """Load creation bytecode for all contracts.

    Example:

    .. code-block:: python

        bytecode = load_deploy_bytecode(Path("contracts/out"))

    :param path:
        Either a Foundry ``out/`` directory, or a JSON file mapping contract names to bytecode.
    """
    path = Path(path)

    if path.is_dir():
        mapping = {}
        for field_name, contract_name in CONTRACT_NAMES.items():
            artifact_path = path / f"{contract_name}.sol" / f"{contract_name}.json"
            if not artifact_path.exists():
                raise BytecodeMissing(f"Artifact missing: {artifact_path}")
            with open(artifact_path, "rt", encoding="utf-8") as f:
                mapping[field_name] = extract_bytecode(json.load(f), contract_name)
    else:
        with open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
        assert type(data) == dict, f"Expected a JSON object mapping contract names to bytecode in {path}"
        mapping = {}
        for field_name, contract_name in CONTRACT_NAMES.items():
            if contract_name not in data:
                raise BytecodeMissing(f"{path} does not contain {contract_name}")
            mapping[field_name] = extract_bytecode(data[contract_name], contract_name)

    logger.info(
        "Loaded creation bytecode from %s, total %d bytes",
        path,
        sum(len(v) for v in mapping.values()),
    )
    return DeployBytecode(**mapping)
