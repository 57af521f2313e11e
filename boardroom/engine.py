from __future__ import annotations

import asyncio
import time
from typing import Callable, Iterable, List, Optional, Sequence, Set

from loguru import logger

from .gateway import GatewayReply, ResponseGateway
from .personas import PersonaType
from .policy import SpeakerPolicy
from .scheduler import Scheduler
from .states import ConversationState, Message, SchedulerState


MessageObserver = Callable[[Message], None]
StateObserver = Callable[[ConversationState], None]
TopicTracker = Callable[[Sequence[Message], str], str]


def summarize_topic(problem: str, limit: int = 120) -> str:
    """First sentence of the problem, trimmed to ``limit`` characters."""
    text = " ".join((problem or "").split())
    for stop in (". ", "? ", "! "):
        idx = text.find(stop)
        if idx != -1:
            text = text[: idx + 1]
    if len(text) > limit:
        text = text[: limit - 3].rstrip() + "..."
    return text


class ConversationEngine:
    """One autonomous boardroom session.

    Owns the conversation state and the engine's own copy of the history,
    drives a Scheduler, and reports every message and state change to the
    registered observers. Lifecycle calls must be made from inside the event
    loop that runs the session.
    """

    def __init__(
        self,
        gateway: ResponseGateway,
        policy: Optional[SpeakerPolicy] = None,
        speaking_interval_ms: int = 3000,
        generation_timeout: Optional[float] = None,
        topic_tracker: Optional[TopicTracker] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not _valid_interval(speaking_interval_ms):
            raise ValueError(f"speaking_interval_ms must be a positive integer, got {speaking_interval_ms!r}")
        self._gateway = gateway
        self._policy = policy or SpeakerPolicy()
        self._interval_ms = int(speaking_interval_ms)
        self._generation_timeout = generation_timeout
        self._topic_tracker = topic_tracker
        self._clock = clock
        self._state = ConversationState()
        self._problem = ""
        self._history: List[Message] = []
        self._message_ids: Set[str] = set()
        self._scheduler: Optional[Scheduler] = None
        self._on_message: Optional[MessageObserver] = None
        self._on_state: Optional[StateObserver] = None
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        return self._state.snapshot()

    @property
    def history(self) -> List[Message]:
        return list(self._history)

    def history_snapshot(self) -> List[Message]:
        return list(self._history)

    @property
    def problem(self) -> str:
        return self._problem

    @property
    def last_speak_time(self) -> float:
        return self._state.last_speak_time

    @property
    def speaking_interval_ms(self) -> int:
        return self._interval_ms

    @property
    def scheduler_state(self) -> SchedulerState:
        if self._scheduler is None:
            return SchedulerState.IDLE
        return self._scheduler.state

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def set_message_callback(self, observer: Optional[MessageObserver]) -> None:
        self._on_message = observer

    def set_state_change_callback(self, observer: Optional[StateObserver]) -> None:
        self._on_state = observer

    def _notify_message(self, message: Message) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(message)
        except Exception:
            logger.exception(f"message_observer_failed | id={message.id} persona={message.persona.value}")

    def _notify_state(self) -> None:
        if self._on_state is None:
            return
        try:
            self._on_state(self._state.snapshot())
        except Exception:
            logger.exception("state_observer_failed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_conversation(self, problem: str, seed_history: Iterable[Message] = ()) -> None:
        if self._state.is_active:
            logger.debug("engine_start_ignored | already active")
            return
        problem = (problem or "").strip()
        if not problem:
            logger.warning("engine_start_rejected | empty problem statement")
            return
        # Fail before touching state when called outside a running loop.
        asyncio.get_running_loop()

        self._problem = problem
        self._history = list(seed_history)
        self._message_ids = {m.id for m in self._history}
        self._state.is_active = True
        self._state.pause_requested = False
        self._state.conversation_round = 0
        self._state.current_speaker = None
        self._state.topic_focus = summarize_topic(problem)
        self._closed.clear()

        self._scheduler = Scheduler(
            host=self,
            gateway=self._gateway,
            interval_ms=self._interval_ms,
            generation_timeout=self._generation_timeout,
            clock=self._clock,
        )
        self._scheduler.start()
        logger.info(
            f"engine_start | seed_messages={len(self._history)} interval_ms={self._interval_ms} "
            f"topic='{self._state.topic_focus}'"
        )
        self._notify_state()

    def pause_conversation(self) -> None:
        if not self._state.is_active or self._state.pause_requested:
            return
        self._state.pause_requested = True
        self._state.current_speaker = None
        if self._scheduler is not None:
            self._scheduler.pause()
        logger.info(f"engine_pause | round={self._state.conversation_round}")
        self._notify_state()

    def resume_conversation(self) -> None:
        if not self._state.is_active or not self._state.pause_requested:
            return
        self._state.pause_requested = False
        if self._scheduler is not None:
            self._scheduler.resume()
        logger.info(f"engine_resume | round={self._state.conversation_round}")
        self._notify_state()

    def stop_conversation(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
        if not self._state.is_active:
            return
        self._state.is_active = False
        self._state.pause_requested = False
        self._state.current_speaker = None
        self._closed.set()
        logger.info(f"engine_stop | rounds={self._state.conversation_round} messages={len(self._history)}")
        self._notify_state()

    async def wait_closed(self) -> None:
        """Wait until the session is stopped and its loop task has unwound."""
        if self._state.is_active:
            await self._closed.wait()
        if self._scheduler is not None:
            await self._scheduler.join()

    # ------------------------------------------------------------------
    # Messages and configuration
    # ------------------------------------------------------------------

    def interrupt_with_user_message(self, message: Message) -> None:
        if message.persona is not PersonaType.USER:
            logger.warning(f"interrupt_rejected | persona={message.persona.value} is not the user")
            return
        self.pause_conversation()
        if self._append(message):
            logger.info(f"engine_interrupt | id={message.id} chars={len(message.content)}")
            self._notify_message(message)

    def add_message(self, message: Message) -> None:
        self._append(message)

    async def respond_once(self, persona: PersonaType, problem: Optional[str] = None) -> Optional[Message]:
        """Ask one persona for a single reply while no session is running.

        The reply is appended to the history and delivered to the message
        observer, but it does not count as a round. Returns None when the
        request is refused or the reply cannot be produced.
        """
        if not persona.is_ai:
            logger.warning(f"respond_once_rejected | persona={persona.value} is not an AI persona")
            return None
        if self._state.is_active:
            logger.warning(f"respond_once_rejected | persona={persona.value} session is active")
            return None
        if self._state.current_speaker is not None:
            logger.warning(f"respond_once_rejected | persona={persona.value} another reply is in progress")
            return None
        problem = (problem or self._problem or "").strip()
        if not problem:
            logger.warning(f"respond_once_rejected | persona={persona.value} empty problem statement")
            return None

        self._state.current_speaker = persona
        self._notify_state()
        try:
            call = self._gateway.generate(persona, problem, self.history_snapshot())
            if self._generation_timeout:
                reply = await asyncio.wait_for(call, timeout=self._generation_timeout)
            else:
                reply = await call
        except Exception as e:
            logger.warning(f"respond_once_failed | spk={persona.value} | {type(e).__name__}: {e}")
            return None
        finally:
            self._release_speaker(persona)

        message = Message(content=reply.content, persona=persona, fact_checked=reply.fact_checked)
        if self._append(message):
            logger.info(
                f"respond_once | spk={persona.value} fact_checked={message.fact_checked} "
                f"chars={len(message.content)}"
            )
            self._notify_message(message)
        return message

    def _release_speaker(self, persona: PersonaType) -> None:
        # A session started meanwhile owns current_speaker now.
        if self._state.is_active or self._state.current_speaker is not persona:
            return
        self._state.current_speaker = None
        self._notify_state()

    def _append(self, message: Message) -> bool:
        if message.id in self._message_ids:
            logger.debug(f"message_duplicate_ignored | id={message.id}")
            return False
        self._history.append(message)
        self._message_ids.add(message.id)
        self._state.last_speak_time = self._clock()
        self._notify_state()
        return True

    def set_speaking_interval(self, ms: int) -> None:
        if not _valid_interval(ms):
            logger.warning(f"interval_rejected | ms={ms!r}")
            return
        self._interval_ms = int(ms)
        if self._scheduler is not None:
            self._scheduler.interval_ms = self._interval_ms
        logger.debug(f"interval_set | ms={self._interval_ms}")

    # ------------------------------------------------------------------
    # Turn reports from the scheduler
    # ------------------------------------------------------------------

    def choose_speaker(self) -> PersonaType:
        return self._policy.select(self._history, self._state.conversation_round, self._state.topic_focus)

    def begin_turn(self, persona: PersonaType) -> None:
        self._state.current_speaker = persona
        logger.debug(f"turn_start | spk={persona.value} t={self._state.conversation_round + 1}")
        self._notify_state()

    def complete_turn(self, persona: PersonaType, reply: GatewayReply) -> None:
        message = Message(content=reply.content, persona=persona, fact_checked=reply.fact_checked)
        self._history.append(message)
        self._message_ids.add(message.id)
        self._state.last_speak_time = self._clock()
        self._state.conversation_round += 1
        self._state.current_speaker = None
        self._update_topic()
        self._log_turn(message)
        self._notify_message(message)
        self._notify_state()

    def skip_turn(self, persona: Optional[PersonaType], error: BaseException) -> None:
        self._state.current_speaker = None
        logger.warning(
            f"turn_skipped | spk={persona.value if persona else 'none'} t={self._state.conversation_round + 1} | "
            f"{type(error).__name__}: {error}"
        )
        self._notify_state()

    def _update_topic(self) -> None:
        if self._topic_tracker is None:
            return
        try:
            focus = self._topic_tracker(list(self._history), self._state.topic_focus)
        except Exception:
            logger.exception("topic_tracker_failed")
            return
        if isinstance(focus, str) and focus.strip():
            self._state.topic_focus = focus.strip()

    def _log_turn(self, message: Message) -> None:
        raw = message.content or ""
        snippet = raw if len(raw) <= 400 else raw[:400] + "..."
        one_line = " ".join(snippet.split())
        logger.info(
            f"boardroom_turn | spk={message.persona.value} t={self._state.conversation_round} "
            f"fact_checked={message.fact_checked} | msg='{one_line}'"
        )


def _valid_interval(ms: object) -> bool:
    return isinstance(ms, int) and not isinstance(ms, bool) and ms > 0
