"""In-memory wallet and codec used across the test suite."""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Dict, List, Optional

from tokenator.errors import DecodeFailure, WalletActionFailure
from tokenator.interfaces import UNLOCKING_SCRIPT_LENGTH, BundleOutput
from tokenator.token_types import Outpoint


class Ledger:
    """Shared chain state so several fake wallets can exchange tokens."""

    def __init__(self):
        self.transactions: Dict[str, dict] = {}
        self.spent = set()
        self._counter = 0

    def next_txid(self) -> str:
        self._counter += 1
        return hashlib.sha256(f"tx-{self._counter}".encode()).hexdigest()


def encode_tx(tx: dict) -> bytes:
    return json.dumps(tx, sort_keys=True).encode()


class FakeWallet:
    """
    In-memory wallet: baskets of outputs, two-phase spends, reversible
    encryption between identity pairs and HMAC via the stdlib.
    """

    def __init__(self, identity: str = "id-alice", ledger: Optional[Ledger] = None,
                 network: str = "mainnet"):
        self.identity = identity
        self.ledger = ledger or Ledger()
        self.network = network
        self.baskets: Dict[str, List[dict]] = {}
        self.pending: Dict[str, dict] = {}
        self.internalized: List[dict] = []
        self.calls: List[str] = []

    # ----- actions -----

    async def create_action(self, description, outputs=None, inputs=None,
                            input_bundle=None, options=None):
        self.calls.append("create_action")
        if not inputs:
            return self._finalize(outputs or [], [])

        for entry in inputs:
            if entry["outpoint"] in self.ledger.spent:
                raise WalletActionFailure(f"{entry['outpoint']} already spent", "ERR_DOUBLE_SPEND")
            if input_bundle is None:
                raise WalletActionFailure("inputBEEF required", "ERR_MISSING_BEEF")

        reference = f"ref-{len(self.pending) + 1}"
        self.pending[reference] = {"outputs": outputs or [], "inputs": inputs}
        partial = encode_tx({"inputs": [i["outpoint"] for i in inputs],
                             "outputs": outputs or [], "partial": True})
        return {"signableTransaction": {"tx": partial, "reference": reference}}

    async def sign_action(self, reference, spends):
        self.calls.append("sign_action")
        action = self.pending.pop(reference)
        for index in range(len(action["inputs"])):
            script = spends[index]["unlockingScript"]
            if len(bytes.fromhex(script)) != UNLOCKING_SCRIPT_LENGTH:
                raise WalletActionFailure("bad unlocking script", "ERR_UNLOCK")
        return self._finalize(action["outputs"], [i["outpoint"] for i in action["inputs"]])

    def _finalize(self, outputs, spent):
        txid = self.ledger.next_txid()
        tx = {"txid": txid, "inputs": spent,
              "outputs": [{"lockingScript": o["lockingScript"], "satoshis": o["satoshis"]}
                          for o in outputs]}
        self.ledger.transactions[txid] = tx
        for outpoint in spent:
            self.ledger.spent.add(outpoint)
            for basket in self.baskets.values():
                basket[:] = [o for o in basket if o["outpoint"] != outpoint]
        for index, output in enumerate(outputs):
            if output.get("basket"):
                self._add(output["basket"], txid, index, output["lockingScript"],
                          output["satoshis"])
        return {"txid": txid, "tx": encode_tx(tx)}

    def _add(self, basket, txid, index, locking_script, satoshis, custom_instructions=None):
        entry = {
            "outpoint": str(Outpoint(txid, index)),
            "lockingScript": locking_script,
            "satoshis": satoshis,
            "spendable": True,
        }
        if custom_instructions is not None:
            entry["customInstructions"] = custom_instructions
        self.baskets.setdefault(basket, []).append(entry)

    def add_raw_output(self, basket: str, locking_script: str, satoshis: int = 1) -> str:
        """Put an arbitrary (possibly undecodable) output in a basket."""
        result = self._finalize([{"lockingScript": locking_script, "satoshis": satoshis}], [])
        self._add(basket, result["txid"], 0, locking_script, satoshis)
        return result["txid"]

    async def list_outputs(self, basket, include=None, include_custom_instructions=False):
        self.calls.append("list_outputs")
        outputs = [dict(o) for o in self.baskets.get(basket, [])]
        if not include_custom_instructions:
            for o in outputs:
                o.pop("customInstructions", None)
        txids = sorted({Outpoint.parse(o["outpoint"]).txid for o in outputs})
        beef = encode_tx({"transactions": [self.ledger.transactions[t] for t in txids]})
        return {"outputs": outputs, "totalOutputs": len(outputs), "BEEF": beef}

    async def internalize_action(self, tx, outputs, description):
        self.calls.append("internalize_action")
        parsed = json.loads(tx)
        for entry in outputs:
            index = entry["outputIndex"]
            out = parsed["outputs"][index]
            remittance = entry["insertionRemittance"]
            self._add(remittance["basket"], parsed["txid"], index,
                      out["lockingScript"], out["satoshis"],
                      remittance.get("customInstructions"))
        self.internalized.append({"tx": tx, "outputs": outputs, "description": description})
        return {"accepted": True}

    # ----- crypto -----

    def _pair(self, counterparty: str) -> bytes:
        other = self.identity if counterparty in ("self", "anyone") else counterparty
        return "+".join(sorted([self.identity, other])).encode()

    async def encrypt(self, plaintext, protocol, key_id, counterparty="self"):
        self.calls.append("encrypt")
        return b"ENC|" + self._pair(counterparty) + b"|" + bytes(plaintext)

    async def decrypt(self, ciphertext, protocol, key_id, counterparty="self"):
        self.calls.append("decrypt")
        parts = bytes(ciphertext).split(b"|", 2)
        if len(parts) != 3 or parts[0] != b"ENC" or parts[1] != self._pair(counterparty):
            raise WalletActionFailure("decryption failed", "ERR_DECRYPT")
        return parts[2]

    async def create_hmac(self, data, protocol, key_id, counterparty="self"):
        key = f"{self.identity}:{counterparty}:{list(protocol)}:{key_id}".encode()
        return hmac.new(key, bytes(data), hashlib.sha256).digest()

    async def get_public_key(self, identity_key=True):
        return self.identity

    async def get_network(self):
        return self.network


class FakeCodec:
    """Locking scripts are hex-encoded JSON documents listing the fields."""

    def __init__(self):
        self.unlocked: List[str] = []

    async def lock(self, fields, protocol, key_id, counterparty):
        doc = {"fields": [bytes(f).hex() for f in fields], "protocol": list(protocol),
               "keyID": key_id, "counterparty": counterparty}
        return json.dumps(doc, sort_keys=True).encode().hex()

    def decode(self, locking_script):
        try:
            doc = json.loads(bytes.fromhex(locking_script))
            return [bytes.fromhex(f) for f in doc["fields"]]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeFailure(f"not a commitment script: {e}")

    async def unlock(self, protocol, key_id, counterparty, partial_tx, input_index):
        self.unlocked.append(counterparty)
        return "00" * UNLOCKING_SCRIPT_LENGTH

    def read_output(self, bundle, output_index, txid=None):
        doc = json.loads(bundle)
        if "transactions" in doc:
            matches = [t for t in doc["transactions"] if t["txid"] == txid]
            if not matches:
                raise DecodeFailure(f"{txid} not in bundle")
            doc = matches[0]
        out = doc["outputs"][output_index]
        return BundleOutput(doc["txid"], output_index, out["lockingScript"], out["satoshis"])


