"""Signature based ABI helpers."""

from eth_utils import keccak

from creator_vault.abi import (
    decode_function_args,
    decode_function_output,
    encode_with_signature,
    get_function_selector,
    present_solidity_args,
    split_signature_types,
)


def test_split_signature_types():
    assert split_signature_types("payoutRecipient()") == []
    assert split_signature_types("setMinter(address,bool)") == ["address", "bool"]
    assert split_signature_types("executeBatch((address,uint256,bytes)[])") == ["(address,uint256,bytes)[]"]
    assert split_signature_types("f(uint256,(address,bool),string)") == ["uint256", "(address,bool)", "string"]


def test_selector():
    assert get_function_selector("transfer(address,uint256)").hex() == "a9059cbb"
    assert get_function_selector("setMinter(address,bool)") == keccak(text="setMinter(address,bool)")[0:4]


def test_encode_decode_args():
    wrapper = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"
    data = encode_with_signature("setMinter(address,bool)", [wrapper, True])
    assert data[0:4] == get_function_selector("setMinter(address,bool)")
    decoded_wrapper, flag = decode_function_args("setMinter(address,bool)", data)
    assert decoded_wrapper.lower() == wrapper.lower()
    assert flag is True


def test_decode_single_output():
    data = (1).to_bytes(32, "big")
    assert decode_function_output(["bool"], data) is True


def test_decode_multiple_outputs():
    data = (7).to_bytes(32, "big") + (1).to_bytes(32, "big")
    assert decode_function_output(["uint256", "bool"], data) == (7, True)


def test_present_solidity_args():
    assert present_solidity_args([b"\x01\x02", 5, "x"]) == "['0x0102', '5', 'x']"
