from __future__ import annotations

import asyncio
import time
from typing import Callable, List, Optional, Protocol

from loguru import logger

from .gateway import GatewayReply, ResponseGateway
from .personas import PersonaType
from .states import Message, SchedulerState


class TurnHost(Protocol):
    """What the scheduler needs from the object that owns conversation state.

    The scheduler never mutates state itself; it reports each step of a turn
    back to the host, which applies it.
    """

    @property
    def problem(self) -> str: ...

    @property
    def last_speak_time(self) -> float: ...

    def history_snapshot(self) -> List[Message]: ...

    def choose_speaker(self) -> PersonaType: ...

    def begin_turn(self, persona: PersonaType) -> None: ...

    def complete_turn(self, persona: PersonaType, reply: GatewayReply) -> None: ...

    def skip_turn(self, persona: Optional[PersonaType], error: BaseException) -> None: ...


class Scheduler:
    """Timed turn loop: IDLE -> RUNNING <-> PAUSED -> STOPPED.

    Each RUNNING stretch is one asyncio task tagged with an epoch. Pausing or
    stopping bumps the epoch and cancels the task, so neither the pacing wait
    nor an outstanding generation call can produce a message afterwards.
    """

    def __init__(
        self,
        host: TurnHost,
        gateway: ResponseGateway,
        interval_ms: int,
        generation_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._gateway = gateway
        self.interval_ms = interval_ms
        self.generation_timeout = generation_timeout
        self._clock = clock
        self.state = SchedulerState.IDLE
        self._epoch = 0
        self._task: Optional[asyncio.Task] = None
        # Pacing restarts from here after start/resume and after a failed turn.
        self._anchor = 0.0

    def start(self) -> None:
        if self.state is not SchedulerState.IDLE:
            return
        self._launch()

    def pause(self) -> None:
        if self.state is not SchedulerState.RUNNING:
            return
        self.state = SchedulerState.PAUSED
        self._cancel()

    def resume(self) -> None:
        if self.state is not SchedulerState.PAUSED:
            return
        self._launch()

    def stop(self) -> None:
        if self.state is SchedulerState.STOPPED:
            return
        self.state = SchedulerState.STOPPED
        self._cancel()

    async def join(self) -> None:
        """Wait for the current loop task, if any, to finish or unwind its cancellation."""
        task = self._task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    def _launch(self) -> None:
        loop = asyncio.get_running_loop()
        self.state = SchedulerState.RUNNING
        self._anchor = self._clock()
        self._task = loop.create_task(self._run(self._epoch))

    def _cancel(self) -> None:
        self._epoch += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _is_current(self, epoch: int) -> bool:
        return self.state is SchedulerState.RUNNING and epoch == self._epoch

    def next_delay(self) -> float:
        """Seconds left before the next turn may start."""
        anchor = max(self._anchor, self._host.last_speak_time)
        elapsed = self._clock() - anchor
        return max(0.0, self.interval_ms / 1000.0 - elapsed)

    async def _run(self, epoch: int) -> None:
        logger.debug(f"scheduler_loop_start | epoch={epoch} interval_ms={self.interval_ms}")
        try:
            while self._is_current(epoch):
                await asyncio.sleep(self.next_delay())
                if not self._is_current(epoch):
                    break
                await self._turn(epoch)
        except asyncio.CancelledError:
            logger.debug(f"scheduler_loop_cancelled | epoch={epoch} state={self.state.value}")
            raise
        logger.debug(f"scheduler_loop_end | epoch={epoch} state={self.state.value}")

    async def _generate(self, persona: PersonaType) -> GatewayReply:
        call = self._gateway.generate(persona, self._host.problem, self._host.history_snapshot())
        if self.generation_timeout:
            return await asyncio.wait_for(call, timeout=self.generation_timeout)
        return await call

    async def _turn(self, epoch: int) -> None:
        persona: Optional[PersonaType] = None
        try:
            persona = self._host.choose_speaker()
            self._host.begin_turn(persona)
            if not self._is_current(epoch):
                return
            reply = await self._generate(persona)
        except Exception as e:
            if self._is_current(epoch):
                if persona is None:
                    logger.exception(f"speaker_selection_failed | epoch={epoch}")
                self._anchor = self._clock()
                self._host.skip_turn(persona, e)
            return
        if not self._is_current(epoch):
            logger.debug(f"turn_discarded | persona={persona.value} epoch={epoch}")
            return
        self._host.complete_turn(persona, reply)
