"""Tests for JsonRpcWallet request/response handling."""
import json

import httpx
import pytest

from tokenator.errors import TimeoutFailure, WalletActionFailure
from tokenator.wallet_client import JsonRpcWallet, from_byte_array, mask_secret


class RpcRecorder:
    def __init__(self, results):
        self.results = results
        self.calls = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.calls.append((payload["method"], payload["params"], request.headers.get("authorization")))
        result = self.results[payload["method"]]
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **result})


def make_wallet(results, **kwargs):
    recorder = RpcRecorder(results)
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder.handler))
    return JsonRpcWallet("http://wallet.test", client=client, **kwargs), recorder


@pytest.mark.asyncio
async def test_create_action_sends_wire_params():
    wallet, recorder = make_wallet({"createAction": {"result": {"txid": "ab", "tx": [1, 2, 3]}}})

    result = await wallet.create_action(
        "Mint",
        outputs=[{"lockingScript": "51", "satoshis": 1}],
        input_bundle=b"\x09\x08",
        options={"randomizeOutputs": False},
    )

    assert result == {"txid": "ab", "tx": b"\x01\x02\x03"}
    method, params, _ = recorder.calls[0]
    assert method == "createAction"
    assert params == {
        "description": "Mint",
        "outputs": [{"lockingScript": "51", "satoshis": 1}],
        "inputBEEF": [9, 8],
        "options": {"randomizeOutputs": False},
    }


@pytest.mark.asyncio
async def test_signable_transaction_is_decoded():
    wallet, _ = make_wallet({"createAction": {"result": {
        "signableTransaction": {"tx": "0a0b", "reference": "ref-1"}}}})
    result = await wallet.create_action("Spend", inputs=[{"outpoint": "aa.0"}])
    assert result["signableTransaction"] == {"tx": b"\x0a\x0b", "reference": "ref-1"}


@pytest.mark.asyncio
async def test_sign_action_uses_string_indices():
    wallet, recorder = make_wallet({"signAction": {"result": {"txid": "cd", "tx": [0]}}})
    await wallet.sign_action("ref-1", {0: {"unlockingScript": "00"}})
    assert recorder.calls[0][1] == {"reference": "ref-1", "spends": {"0": {"unlockingScript": "00"}}}


@pytest.mark.asyncio
async def test_crypto_calls():
    wallet, recorder = make_wallet({
        "encrypt": {"result": {"ciphertext": [7, 7]}},
        "createHmac": {"result": {"hmac": "ff00"}},
        "getPublicKey": {"result": {"publicKey": "02abc"}},
    })

    assert await wallet.encrypt(b"hi", (1, "todo"), "1", "self") == b"\x07\x07"
    assert await wallet.create_hmac(b"x", (0, "PeerServ"), "1", "02def") == b"\xff\x00"
    assert await wallet.get_public_key() == "02abc"
    assert recorder.calls[0][1] == {"plaintext": [104, 105], "protocolID": [1, "todo"],
                                    "keyID": "1", "counterparty": "self"}


@pytest.mark.asyncio
async def test_rpc_error_becomes_wallet_failure():
    wallet, _ = make_wallet({"listOutputs": {"error": {"code": -4, "message": "no basket"}}})
    with pytest.raises(WalletActionFailure) as exc:
        await wallet.list_outputs("todo")
    assert exc.value.code == "-4"
    assert exc.value.message == "no basket"


@pytest.mark.asyncio
async def test_non_json_reply_becomes_wallet_failure():
    wallet, _ = make_wallet({"getNetwork": httpx.Response(200, text="<html>proxy</html>"),
                             "getPublicKey": httpx.Response(200, json=[1, 2])})
    with pytest.raises(WalletActionFailure) as exc:
        await wallet.get_network()
    assert exc.value.code == "ERR_WALLET_RESPONSE"

    with pytest.raises(WalletActionFailure) as exc:
        await wallet.get_public_key()
    assert exc.value.code == "ERR_WALLET_RESPONSE"


@pytest.mark.asyncio
async def test_list_outputs_can_request_custom_instructions():
    wallet, recorder = make_wallet({"listOutputs": {"result": {"outputs": []}}})
    await wallet.list_outputs("received", include_custom_instructions=True)
    await wallet.list_outputs("received")
    assert recorder.calls[0][1]["includeCustomInstructions"] is True
    assert "includeCustomInstructions" not in recorder.calls[1][1]


@pytest.mark.asyncio
async def test_http_failure_and_timeout():
    wallet, _ = make_wallet({"getNetwork": httpx.Response(500)})
    with pytest.raises(WalletActionFailure) as exc:
        await wallet.get_network()
    assert exc.value.code == "ERR_WALLET_UNAVAILABLE"
    assert await wallet.test_connection() is False

    def slow(request):
        raise httpx.ConnectTimeout("slow", request=request)

    wallet = JsonRpcWallet("http://wallet.test",
                           client=httpx.AsyncClient(transport=httpx.MockTransport(slow)))
    with pytest.raises(TimeoutFailure):
        await wallet.get_network()


@pytest.mark.asyncio
async def test_basic_auth_is_sent():
    wallet, recorder = make_wallet({"getNetwork": {"result": {"network": "testnet"}}},
                                   user="rpc", password="secret")
    assert await wallet.get_network() == "testnet"
    assert recorder.calls[0][2].startswith("Basic ")


def test_byte_helpers():
    assert from_byte_array([1, 255]) == b"\x01\xff"
    assert from_byte_array("01ff") == b"\x01\xff"
    assert from_byte_array(None) is None
    assert mask_secret("supersecretpassword") == "supe...rd"
    assert mask_secret("short") == "***"
