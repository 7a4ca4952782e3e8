"""
Tokenator - Token Exchange

Hand a freshly minted token to another identity through the relay, and
pull received tokens into a wallet basket.

Transfer message body (JSON):
  {
    "transaction": <hex>,      # bundle carrying the token output
    "outputIndex": 0,
    "satoshis": 1,
    "lockingScript": <hex>,
    "protocol": [level, name],
    "keyID": "1",
    "sender": <identity key>
  }
"""

import json
import logging
from typing import Any, Dict, List, Sequence

from .channel import MessageChannel
from .errors import TokenatorError, ValidationError
from .interfaces import WalletInterface
from .manager import TokenCommitmentManager
from .token_types import Message, Outpoint, Token

log = logging.getLogger(__name__)

REQUIRED_INSTRUCTIONS = ("transaction", "outputIndex", "protocol", "keyID", "sender")


class TokenExchange:
    """
    Usage:
        exchange = TokenExchange(manager, channel, wallet, "token_inbox")

        # Sender
        await exchange.send_token(bob_key, [b"ticket #42"])

        # Recipient
        tokens = await exchange.receive_tokens(basket="tickets")
    """

    def __init__(self, manager: TokenCommitmentManager, channel: MessageChannel,
                 wallet: WalletInterface, message_box: str):
        if not message_box:
            raise ValidationError("You must specify a messageBox", "ERR_MESSAGEBOX_REQUIRED")
        self.manager = manager
        self.channel = channel
        self.wallet = wallet
        self.message_box = message_box

    async def send_token(self, recipient: str, fields: Sequence[bytes],
                         satoshis: int = 1, encrypt: bool = True) -> Dict[str, Any]:
        """
        Mint a token locked for ``recipient`` and send it the spend
        instructions.

        Returns:
            {"token": Token, "messageId": str}
        """
        if not recipient:
            raise ValidationError("You must specify the message recipient!",
                                  "ERR_MESSAGE_RECIPIENT_REQUIRED")

        token = await self.manager.create(
            fields,
            satoshis=satoshis,
            description="Tokenator - send token",
            counterparty=recipient,
            encrypt=encrypt,
            encrypt_for=recipient,
            track=False,
        )
        sender = await self.channel.identity_key()
        config = self.manager.config

        body = {
            "transaction": token.bundle.hex(),
            "outputIndex": token.output_index,
            "satoshis": token.satoshis,
            "lockingScript": token.locking_script,
            "protocol": list(config.protocol),
            "keyID": config.key_id,
            "sender": sender,
        }
        sent = await self.channel.send(recipient, self.message_box, body)
        log.info(f"Sent token {token.outpoint} to {recipient[:16]}...")
        return {"token": token, "messageId": sent["messageId"]}

    async def receive_tokens(self, basket: str) -> List[Token]:
        """
        Internalize every token waiting in the mailbox into ``basket``.

        Messages that fail are logged and stay on the relay; all
        successfully received ones are acknowledged together.
        """
        if not basket:
            raise ValidationError("basket is required to receive tokens", "ERR_BASKET_REQUIRED")

        messages = await self.channel.list(self.message_box)
        received: List[Token] = []
        handled: List[str] = []

        for message in messages:
            try:
                received.append(await self._receive_one(message, basket))
                handled.append(message.message_id)
            except (TokenatorError, ValueError, KeyError, TypeError) as e:
                log.warning(f"Could not receive token from message {message.message_id}: {e}")

        if handled:
            await self.channel.acknowledge(handled)
        log.info(f"Received {len(received)} of {len(messages)} token message(s)")
        return received

    async def _receive_one(self, message: Message, basket: str) -> Token:
        instructions = message.json_body()
        if not isinstance(instructions, dict):
            raise ValidationError("message body is not a token transfer", "ERR_INVALID_TRANSFER")
        missing = [k for k in REQUIRED_INSTRUCTIONS if k not in instructions]
        if missing:
            raise ValidationError(f"transfer is missing {', '.join(missing)}",
                                  "ERR_INVALID_TRANSFER")

        tx = bytes.fromhex(instructions["transaction"])
        output_index = int(instructions["outputIndex"])
        sender = instructions["sender"]

        codec = self.manager.codec
        output = codec.read_output(tx, output_index)
        fields = codec.decode(output.locking_script)

        await self.wallet.internalize_action(
            tx,
            [{
                "outputIndex": output_index,
                "protocol": "basket insertion",
                "insertionRemittance": {
                    "basket": basket,
                    "customInstructions": json.dumps({
                        "sender": sender,
                        "protocolID": instructions["protocol"],
                        "keyID": instructions["keyID"],
                    }),
                },
            }],
            "Tokenator - receive token",
        )

        try:
            fields = await self.manager.crypto.decrypt_fields(fields, sender)
        except TokenatorError as e:
            log.debug(f"Token {output.txid}.{output_index} kept encrypted: {e.message}")

        return Token(
            outpoint=Outpoint(output.txid, output_index),
            fields=fields,
            satoshis=output.satoshis,
            locking_script=output.locking_script,
            bundle=tx,
            counterparty=sender,
        )
