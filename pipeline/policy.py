"""Who answers a transcript, and what each of them gets to see."""

import random
from typing import List, Sequence

from pipeline.history import ConversationHistory, Turn
from pipeline.personas import Persona

CONTEXT_TURNS = 10

MEETING_DIRECTIVE = (
    "IMPORTANT: You are in a meeting with other participants. Previous responses from your "
    "colleagues are shown above. Build on what they said, reference their points, agree or "
    "politely disagree, and add your own perspective. Don't just repeat what others said - "
    "contribute something new from your unique role perspective."
)


class SingleAgentPolicy:
    """One implicit persona answers every transcript."""

    highlights = False

    def __init__(self, persona: Persona, context_turns: int = CONTEXT_TURNS):
        self.persona = persona
        self.context_turns = context_turns

    def select(self) -> List[Persona]:
        return [self.persona]

    def _message(self, turn: Turn) -> dict:
        return {"role": "user" if turn.is_user else "assistant", "content": turn.text}

    def build_context(self, history: ConversationHistory, transcript: str) -> List[dict]:
        messages = [self._message(t) for t in history.recent(self.context_turns)]
        # 直前が今回の発話そのものなら二重に積まない（単純な文字列比較）
        if not messages or messages[-1]["content"] != transcript:
            messages.append({"role": "user", "content": transcript})
        return messages

    def system_instructions(self, persona: Persona) -> str:
        return persona.instructions

    def voice_for(self, persona: Persona) -> str:
        return persona.voice_id

    def thinking_label(self, persona: Persona) -> str:
        return "Thinking..."

    def speaking_label(self, persona: Persona) -> str:
        return "Speaking..."


class MeetingPolicy(SingleAgentPolicy):
    """A roster of personas; everyone answers in order, or one picked at random."""

    highlights = True

    def __init__(
        self,
        roster: Sequence[Persona],
        all_respond: bool = True,
        base_voice_id: str = "",
        rng: random.Random | None = None,
        context_turns: int = CONTEXT_TURNS,
    ):
        if not roster:
            raise ValueError("a meeting needs at least one participant")
        self.roster = tuple(roster)
        self.all_respond = all_respond
        self.base_voice_id = base_voice_id
        self.rng = rng or random.Random()
        self.context_turns = context_turns

    def select(self) -> List[Persona]:
        if self.all_respond:
            return list(self.roster)
        return [self.rng.choice(self.roster)]

    def _message(self, turn: Turn) -> dict:
        if turn.is_user:
            return {"role": "user", "content": turn.text}
        # 他の参加者の発言を参照できるよう名前を付ける
        return {"role": "assistant", "content": f"{turn.speaker}: {turn.text}"}

    def system_instructions(self, persona: Persona) -> str:
        return f"{persona.instructions}\n\n{MEETING_DIRECTIVE}"

    def voice_for(self, persona: Persona) -> str:
        return persona.voice_id or self.base_voice_id

    def thinking_label(self, persona: Persona) -> str:
        return f"{persona.name} is thinking..."

    def speaking_label(self, persona: Persona) -> str:
        return f"{persona.name} is speaking..."
