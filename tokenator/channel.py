"""
Tokenator - Message Channel

Store-and-forward messaging through the relay, plus optional live
delivery over a LiveSession.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from .crypto import compute_message_id
from .errors import ValidationError
from .interfaces import WalletInterface
from .live import LiveSession
from .relay import RelayClient
from .token_types import Message, canonical_json

log = logging.getLogger(__name__)

MessageCallback = Callable[[Message], Union[None, Awaitable[None]]]


def live_url_for(relay_url: str) -> str:
    """ws(s) URL of the relay's live endpoint."""
    if relay_url.startswith("https://"):
        return "wss://" + relay_url[len("https://"):].rstrip("/")
    if relay_url.startswith("http://"):
        return "ws://" + relay_url[len("http://"):].rstrip("/")
    return relay_url.rstrip("/")


class MessageChannel:
    """
    Usage:
        channel = MessageChannel(RelayClient(url), wallet)

        sent = await channel.send(recipient_key, "inbox", {"hello": "world"})
        for msg in await channel.list("inbox"):
            ...
        await channel.acknowledge([m.message_id for m in messages])

        # Live delivery
        await channel.listen("inbox", on_message=print)
        await channel.send_live(recipient_key, "inbox", "ping")
    """

    def __init__(self, relay: RelayClient, wallet: WalletInterface,
                 live_url: Optional[str] = None, connect=None):
        self.relay = relay
        self.wallet = wallet
        self.live_url = live_url or live_url_for(relay.base_url)
        self._connect = connect
        self._session: Optional[LiveSession] = None
        self._identity_key: Optional[str] = None

    # ═══════════════════════════════════════════════════════════════════════
    # STORE AND FORWARD
    # ═══════════════════════════════════════════════════════════════════════

    async def send(self, recipient: str, message_box: str, body: Any,
                   message_id: Optional[str] = None) -> dict:
        """
        Send a message to ``recipient``'s ``message_box``.

        Returns:
            {"status": ..., "messageId": ...} where messageId is deterministic
            for a given (body, recipient) unless one is supplied.
        """
        _validate_message(recipient, message_box, body)
        if not message_id:
            message_id = await compute_message_id(self.wallet, body, recipient)

        response = await self.relay.send_message({
            "recipient": recipient,
            "messageBox": message_box,
            "messageId": message_id,
            "body": serialize_body(body),
        })
        log.info(f"Sent message {message_id[:16]}... to {message_box}")
        return {**response, "messageId": message_id}

    async def list(self, message_box: str) -> List[Message]:
        """All messages in ``message_box`` not yet acknowledged."""
        if not message_box:
            raise ValidationError("You must specify a messageBox", "ERR_MESSAGEBOX_REQUIRED")
        return [Message.from_dict(m) for m in await self.relay.list_messages(message_box)]

    async def read(self, message_ids: Iterable[str]) -> List[Message]:
        """Fetch specific messages; they stay on the relay until acknowledged."""
        ids = _require_ids(message_ids)
        return [Message.from_dict(m) for m in await self.relay.read_messages(ids)]

    async def acknowledge(self, message_ids: Iterable[str]) -> str:
        """Delete messages from the relay. Unknown/already-gone ids are fine."""
        ids = _require_ids(message_ids)
        status = await self.relay.acknowledge_messages(ids)
        log.debug(f"Acknowledged {len(ids)} message(s)")
        return status

    # ═══════════════════════════════════════════════════════════════════════
    # LIVE DELIVERY
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def session(self) -> LiveSession:
        """The channel's live session, created on first use."""
        if self._session is None:
            self._session = LiveSession(self.live_url, connect=self._connect)
        return self._session

    async def identity_key(self) -> str:
        if self._identity_key is None:
            self._identity_key = await self.wallet.get_public_key(identity_key=True)
        return self._identity_key

    async def join(self, message_box: str) -> str:
        """Join this identity's room for ``message_box``; returns the room id."""
        room_id = f"{await self.identity_key()}-{message_box}"
        await self.session.join(room_id)
        return room_id

    async def listen(self, message_box: str, on_message: MessageCallback,
                     auto_acknowledge: bool = True) -> str:
        """
        Deliver live messages for ``message_box`` to ``on_message``.

        With ``auto_acknowledge`` each delivered message is acknowledged
        after the callback returns, so it is not listed again later.
        """
        if not message_box:
            raise ValidationError("You must specify a messageBox", "ERR_MESSAGEBOX_REQUIRED")
        room_id = await self.join(message_box)

        async def _deliver(data):
            message = Message.from_dict({**(data or {}), "messageBox": message_box})
            result = on_message(message)
            if inspect.isawaitable(result):
                await result
            if auto_acknowledge and message.message_id:
                await self.acknowledge([message.message_id])

        self.session.on(f"sendMessage-{room_id}", _deliver)
        return room_id

    async def send_live(self, recipient: str, message_box: str, body: Any,
                        message_id: Optional[str] = None) -> dict:
        """
        Push a message to the recipient's room if they are online, then
        store it on the relay so offline recipients still receive it.
        """
        _validate_message(recipient, message_box, body)
        if not message_id:
            message_id = await compute_message_id(self.wallet, body, recipient)

        await self.session.emit("sendMessage", {
            "roomId": f"{recipient}-{message_box}",
            "message": {"body": serialize_body(body), "messageId": message_id},
        })
        return await self.send(recipient, message_box, body, message_id=message_id)

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None


def serialize_body(body: Any) -> str:
    """Bodies travel as text; structured values become canonical JSON."""
    if isinstance(body, str):
        return body
    return canonical_json(body)


def _validate_message(recipient: str, message_box: str, body: Any):
    if not recipient:
        raise ValidationError("You must specify the message recipient!",
                              "ERR_MESSAGE_RECIPIENT_REQUIRED")
    if not message_box:
        raise ValidationError("You must specify a messageBox!", "ERR_MESSAGEBOX_REQUIRED")
    if body is None or body == "":
        raise ValidationError("Every message must have a body!", "ERR_MESSAGE_BODY_REQUIRED")


def _require_ids(message_ids: Iterable[str]) -> List[str]:
    ids = [str(m) for m in (message_ids or [])]
    if not ids:
        raise ValidationError("You must provide at least one messageId",
                              "ERR_MESSAGE_IDS_REQUIRED")
    return ids
