"""Conversation loop: listen, transcribe, let personas answer, speak, repeat.

One ``SessionOrchestrator`` drives one conversation. The whole loop runs as
a single asyncio task and awaits every stage in turn, so at most one
external call is in flight and capture never overlaps playback. Stopping
(``force_stop``/``end_session``) cancels that task and waits for its
cleanup, which releases the microphone and the output device.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import config
from audio.player import Player
from audio.recorder import CaptureSettings, Recorder, RecordedSegment
from errors import CaptureUnavailable, VoiceLoopError
from pipeline import personas
from pipeline.history import ConversationHistory, Turn
from pipeline.policy import MeetingPolicy, SingleAgentPolicy
from services.chat_client import RelayResponder
from services.stt_client import RelayTranscriber
from services.tts_client import RelaySynthesizer

logger = logging.getLogger(__name__)

AGENT_HISTORY_TURNS = 20
MEETING_HISTORY_TURNS = 30
RETRY_DELAY = 2.0


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    REASONING = "reasoning"
    SPEAKING = "speaking"


class Phase(str, Enum):
    """What the status indicator shows; a session state or an error."""

    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    REASONING = "reasoning"
    SPEAKING = "speaking"
    ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    phase: Phase
    label: str


class SessionOrchestrator:
    def __init__(
        self,
        policy: SingleAgentPolicy,
        recorder,
        transcriber,
        responder,
        synthesizer,
        player,
        history: ConversationHistory | None = None,
        retry_delay: float = RETRY_DELAY,
        on_status: Optional[Callable[[StatusEvent], None]] = None,
        on_turn: Optional[Callable[[Turn], None]] = None,
        on_highlight: Optional[Callable[[int, bool], None]] = None,
    ):
        self.policy = policy
        self._recorder = recorder
        self._transcriber = transcriber
        self._responder = responder
        self._synthesizer = synthesizer
        self._player = player
        self._history = history if history is not None else ConversationHistory(AGENT_HISTORY_TURNS)
        self.retry_delay = retry_delay
        self.on_status = on_status
        self.on_turn = on_turn
        self.on_highlight = on_highlight

        self._state = SessionState.IDLE
        self._active = False
        self._task: asyncio.Task | None = None
        self._force_stopped = False
        self._highlighted: list[int] = []
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._active

    @property
    def history(self) -> ConversationHistory:
        return self._history

    # ---- public controls ----

    async def start(self) -> None:
        if self._active:
            return
        logger.info("session start")
        self._active = True
        self._force_stopped = False
        self._idle.clear()
        await self._cancel_task()
        self._spawn()

    async def end_session(self) -> None:
        logger.info("session end")
        self._active = False
        await self._cancel_task()
        self._release_devices()
        self._enter(SessionState.IDLE, label="Ready")

    async def force_stop(self) -> None:
        """Interrupt whatever is happening and go back to listening (or idle).

        Calling it again before the restarted cycle is back in listening does
        nothing.
        """
        if self._force_stopped:
            return
        self._force_stopped = True
        logger.info("force stop")
        await self._cancel_task()
        self._release_devices()
        if self._active:
            self._spawn()
        else:
            self._enter(SessionState.IDLE, label="Ready")

    def stop_listening(self) -> None:
        if self._state == SessionState.LISTENING:
            self._recorder.stop("user")

    async def wait_idle(self) -> None:
        await self._idle.wait()

    # ---- loop ----

    def _spawn(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _release_devices(self) -> None:
        self._player.interrupt()
        self._recorder.end()
        self._clear_highlights()

    async def _run(self) -> None:
        while self._active:
            try:
                await self._cycle()
            except CaptureUnavailable as e:
                logger.error(f"microphone unavailable: {e}")
                self._active = False
                self._enter(SessionState.IDLE, Phase.ERROR, "Microphone access denied")
                return
            except VoiceLoopError as e:
                logger.error(f"turn failed: {e}")
                await self._recover(str(e))
            except Exception:
                logger.exception("unexpected error in conversation loop")
                await self._recover("Error processing")
        self._enter(SessionState.IDLE, label="Ready")

    async def _recover(self, label: str) -> None:
        self._clear_highlights()
        self._enter(SessionState.IDLE, Phase.ERROR, label)
        if self._active:
            # 少し待ってから自動で聞き直す
            await asyncio.sleep(self.retry_delay)

    async def _cycle(self) -> None:
        segment = await self._listen()
        if segment.is_empty:
            self._status(Phase(self._state.value), "No speech detected")
            return

        self._enter(SessionState.TRANSCRIBING, label="Processing...")
        transcript = (await self._transcriber.transcribe(segment)).strip()
        if not transcript:
            self._status(Phase.TRANSCRIBING, "No speech detected")
            return

        self._append(Turn(role="user", text=transcript))
        # 後の参加者は前の参加者の返答を文脈に含むので、必ず順番に待つ
        for persona in self.policy.select():
            await self._respond(persona, transcript)

    async def _listen(self) -> RecordedSegment:
        await self._recorder.begin()
        self._enter(SessionState.LISTENING, label="Listening...")
        self._force_stopped = False
        segment = None
        try:
            await self._recorder.record()
        finally:
            segment = self._recorder.end()
        return segment

    async def _respond(self, persona: personas.Persona, transcript: str) -> None:
        self._highlight(persona.id)
        try:
            self._enter(SessionState.REASONING, label=self.policy.thinking_label(persona))
            messages = self.policy.build_context(self._history, transcript)
            reply = await self._responder.respond(messages, self.policy.system_instructions(persona))
            self._append(Turn(role="assistant", text=reply, speaker=persona.display_name))

            self._enter(SessionState.SPEAKING, label=self.policy.speaking_label(persona))
            audio = await self._synthesizer.synthesize(reply, self.policy.voice_for(persona))
            await self._player.play(audio)
        finally:
            self._unhighlight(persona.id)

    # ---- state & events ----

    def _enter(self, state: SessionState, phase: Phase | None = None, label: str = "") -> None:
        if state != self._state:
            logger.info(f"[state] {self._state.value} -> {state.value}")
        self._state = state
        if state == SessionState.IDLE and not self._active:
            self._idle.set()
        self._status(phase or Phase(state.value), label)

    def _status(self, phase: Phase, label: str) -> None:
        self._notify(self.on_status, StatusEvent(phase, label))

    def _append(self, turn: Turn) -> None:
        self._history.append(turn)
        logger.info(f"[turn] {turn.speaker}: {turn.text[:60]}")
        self._notify(self.on_turn, turn)

    def _highlight(self, persona_id: int) -> None:
        if not self.policy.highlights:
            return
        self._highlighted.append(persona_id)
        self._notify(self.on_highlight, persona_id, True)

    def _unhighlight(self, persona_id: int) -> None:
        if persona_id in self._highlighted:
            self._highlighted.remove(persona_id)
            self._notify(self.on_highlight, persona_id, False)

    def _clear_highlights(self) -> None:
        for persona_id in list(self._highlighted):
            self._unhighlight(persona_id)

    @staticmethod
    def _notify(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("session event callback failed")


def _capture_settings(**overrides) -> CaptureSettings:
    return CaptureSettings(
        sample_rate=config.SAMPLE_RATE,
        channels=config.INPUT_CHANNELS,
        channel_strategy=config.CHANNEL_STRATEGY,
        device=config.INPUT_DEVICE,
        **overrides,
    )


def create_agent_session(
    settings: config.AgentSettings,
    recorder=None,
    transcriber=None,
    responder=None,
    synthesizer=None,
    player=None,
    **kwargs,
) -> SessionOrchestrator:
    """One-on-one conversation: fixed 5 second recordings, 20 turns of history."""
    persona = personas.single_agent(settings.voice_id, settings.system_prompt)
    return SessionOrchestrator(
        policy=SingleAgentPolicy(persona),
        recorder=recorder or Recorder(_capture_settings(max_duration=5.0)),
        transcriber=transcriber or RelayTranscriber(),
        responder=responder or RelayResponder(),
        synthesizer=synthesizer or RelaySynthesizer(),
        player=player or Player(device=config.OUTPUT_DEVICE),
        history=ConversationHistory(AGENT_HISTORY_TURNS),
        **kwargs,
    )


def create_meeting_session(
    settings: config.MeetingSettings,
    roster: Sequence[personas.Persona] = personas.MEETING_ROSTER,
    rng: random.Random | None = None,
    recorder=None,
    transcriber=None,
    responder=None,
    synthesizer=None,
    player=None,
    **kwargs,
) -> SessionOrchestrator:
    """Meeting room: recordings end on 10 s of silence (30 s at most), 30 turns of history."""
    capture = _capture_settings(max_duration=30.0, silence_detection=True, silence_duration=10.0)
    return SessionOrchestrator(
        policy=MeetingPolicy(
            roster,
            all_respond=settings.all_respond,
            base_voice_id=settings.base_voice_id,
            rng=rng,
        ),
        recorder=recorder or Recorder(capture),
        transcriber=transcriber or RelayTranscriber(),
        responder=responder or RelayResponder(),
        synthesizer=synthesizer or RelaySynthesizer(),
        player=player or Player(device=config.OUTPUT_DEVICE),
        history=ConversationHistory(MEETING_HISTORY_TURNS),
        **kwargs,
    )
