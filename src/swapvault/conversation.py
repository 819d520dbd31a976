"""Per-conversation state for "reply to this message" flows.

Each chat holds at most one pending intent. The front-end stores what it is
waiting for with ``expect`` and consumes it with ``pop_pending`` when the
user's reply arrives.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class AwaitingTradeAddress:
    """Waiting for a coin type address to trade."""

    wallet_id: Optional[int] = None


@dataclass(frozen=True)
class AwaitingRename:
    """Waiting for a new label for a wallet."""

    wallet_id: int


@dataclass(frozen=True)
class AwaitingBuyAmount:
    """Waiting for a custom native-coin amount to spend."""

    wallet_id: int
    coin_id: int


@dataclass(frozen=True)
class AwaitingSellPercentage:
    """Waiting for a custom percentage of the position to sell."""

    wallet_id: int
    coin_id: int


PendingIntent = Union[
    AwaitingTradeAddress,
    AwaitingRename,
    AwaitingBuyAmount,
    AwaitingSellPercentage,
]


@dataclass
class ConversationState:
    chat_id: int
    pending: Optional[PendingIntent] = None
    prompt_message_id: Optional[int] = None
    updated_at: float = field(default_factory=time.time)

    def expect(self, intent: PendingIntent, prompt_message_id: Optional[int] = None) -> None:
        """Replace any pending intent with ``intent``."""
        self.pending = intent
        self.prompt_message_id = prompt_message_id
        self.updated_at = time.time()

    def pop_pending(self, reply_to_message_id: Optional[int] = None) -> Optional[PendingIntent]:
        """Consume the pending intent.

        If the prompt message is known, only a reply to that message matches.
        """
        if self.pending is None:
            return None
        if (
            self.prompt_message_id is not None
            and reply_to_message_id is not None
            and reply_to_message_id != self.prompt_message_id
        ):
            return None

        intent = self.pending
        self.clear()
        return intent

    def clear(self) -> None:
        self.pending = None
        self.prompt_message_id = None
        self.updated_at = time.time()


class ConversationStore:
    """In-memory conversation states keyed by chat id."""

    def __init__(self, ttl_seconds: float = 900.0):
        self.ttl_seconds = ttl_seconds
        self._states: dict[int, ConversationState] = {}

    def get(self, chat_id: int) -> ConversationState:
        """Get (or start) the state for a chat. Stale intents are dropped."""
        state = self._states.get(chat_id)
        if state is None:
            state = ConversationState(chat_id=chat_id)
            self._states[chat_id] = state
        elif state.pending is not None and time.time() - state.updated_at > self.ttl_seconds:
            state.clear()
        return state

    def discard(self, chat_id: int) -> None:
        self._states.pop(chat_id, None)

    def __len__(self) -> int:
        return len(self._states)
