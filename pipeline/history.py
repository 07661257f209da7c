from collections import deque
from dataclasses import dataclass
from typing import Iterator, List, Literal

USER_SPEAKER = "You"


@dataclass(frozen=True)
class Turn:
    role: Literal["user", "assistant"]
    text: str
    speaker: str = USER_SPEAKER

    @property
    def is_user(self) -> bool:
        return self.role == "user"


class ConversationHistory:
    """Append-only turn log that keeps only the newest ``max_turns`` entries."""

    def __init__(self, max_turns: int = 20):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._turns: deque = deque(maxlen=max_turns)

    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        return turn

    def recent(self, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        return list(self._turns)[-limit:]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def __getitem__(self, index):
        return list(self._turns)[index]
