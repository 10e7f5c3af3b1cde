"""Loading creation bytecode from compiler artifacts."""

import json

import pytest
from hexbytes import HexBytes

from creator_vault.bytecode import CONTRACT_NAMES, BytecodeMissing, DeployBytecode, extract_bytecode, load_deploy_bytecode


def _write_forge_out(out_dir, skip: str | None = None):
    for i, contract_name in enumerate(CONTRACT_NAMES.values()):
        if contract_name == skip:
            continue
        artifact_dir = out_dir / f"{contract_name}.sol"
        artifact_dir.mkdir(parents=True)
        artifact = {"bytecode": {"object": f"0x6080604052{i:02x}", "sourceMap": "", "linkReferences": {}}}
        (artifact_dir / f"{contract_name}.json").write_text(json.dumps(artifact))


def test_extract_forge_artifact():
    assert extract_bytecode({"bytecode": {"object": "0x6080"}}) == HexBytes("0x6080")


def test_extract_hardhat_artifact():
    assert extract_bytecode({"bytecode": "6080"}) == HexBytes("0x6080")


def test_extract_missing():
    with pytest.raises(BytecodeMissing):
        extract_bytecode({"bytecode": {"object": "0x"}}, "CreatorOVault")
    with pytest.raises(BytecodeMissing):
        extract_bytecode({"abi": []}, "CreatorOVault")


def test_extract_unlinked():
    with pytest.raises(BytecodeMissing):
        extract_bytecode("0x6080__$1234567890abcdef$__", "CreatorOVault")


def test_load_forge_out(tmp_path):
    _write_forge_out(tmp_path)
    bytecode = load_deploy_bytecode(tmp_path)
    assert bytecode.vault == HexBytes("0x608060405200")
    assert bytecode.oft_bootstrap_registry == HexBytes("0x608060405206")


def test_load_forge_out_missing_artifact(tmp_path):
    _write_forge_out(tmp_path, skip="CreatorOracle")
    with pytest.raises(BytecodeMissing):
        load_deploy_bytecode(tmp_path)


def test_load_flat_json(tmp_path):
    path = tmp_path / "bytecode.json"
    path.write_text(json.dumps({name: "0x60806040" for name in CONTRACT_NAMES.values()}))
    bytecode = load_deploy_bytecode(path)
    assert bytecode.share_token == HexBytes("0x60806040")


def test_empty_bytecode_rejected():
    values = {name: HexBytes("0x6080") for name in CONTRACT_NAMES}
    values["wrapper"] = HexBytes(b"")
    with pytest.raises(BytecodeMissing):
        DeployBytecode(**values)
