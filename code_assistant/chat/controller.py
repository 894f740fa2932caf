"""
Conversation controller: owns the chat turns and the reveal animation,
calls the prompt relay, and publishes every state change on the event bus.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..config import ControllerConfig
from ..shared.event_bus import (
    Event,
    EventBus,
    copied_event,
    reset_event,
    reveal_event,
    status_event,
    turn_event,
)
from .animation import AnimationState
from .blob_store import BlobStore
from .relay_client import RelayClient, RelayError
from .schema import AssistantTurn, CodeLine, ErrorTurn, Turn, UserTurn

logger = logging.getLogger(__name__)


class ConversationController:
    """
    Single owner of the conversation and animation state. All mutation goes
    through these methods; rendering surfaces follow along via the bus.

    A relay response that lands after reset() is appended to the fresh
    conversation. In-flight calls are never cancelled.
    """

    def __init__(
        self,
        config: ControllerConfig,
        relay: RelayClient,
        event_bus: EventBus,
        blobs: Optional[BlobStore] = None,
    ):
        self.config = config
        self.relay = relay
        self.bus = event_bus
        self.blobs = blobs or BlobStore()

        self.turns: List[Turn] = []
        self.animation = AnimationState(config.reveal_mode)
        self.prompt: str = ""
        self.in_flight = False
        self.copied = False
        self.seq = 0

        self._reveal_tasks: Dict[str, asyncio.Task] = {}
        self._copied_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def set_prompt(self, text: str) -> None:
        """Update the draft prompt."""
        self.prompt = text
        await self._publish_status()

    async def submit(self, prompt_text: Optional[str] = None) -> Optional[Turn]:
        """
        Send a prompt through the relay.

        Uses the draft prompt when no text is given. Returns the assistant-side
        turn that was appended, or None when the submission was ignored
        (blank text or a request already in flight).
        """
        text = self.prompt if prompt_text is None else prompt_text
        if not text.strip() or self.in_flight:
            return None

        await self._append(UserTurn(content=text))
        self.in_flight = True
        await self._publish_status()

        try:
            code = await self.relay.generate(text)
        except Exception as e:
            logger.error("Error: %s", e)
            message = e.message if isinstance(e, RelayError) else str(e)
            turn: Turn = ErrorTurn.from_failure(message)
            await self._append(turn)
        else:
            turn = AssistantTurn.from_code(code)
            await self._append(turn)
            self.prompt = ""
            await self._start_reveal(turn)
        finally:
            self.in_flight = False
            await self._publish_status()

        return turn

    # ------------------------------------------------------------------
    # Reveal animation
    # ------------------------------------------------------------------

    async def _start_reveal(self, turn: AssistantTurn) -> None:
        preempted = self.animation.begin(turn.id, turn.total_lines)
        if preempted is not None:
            task = self._reveal_tasks.pop(preempted, None)
            if task:
                task.cancel()
            await self._publish(reveal_event(
                preempted,
                self.animation.visible[preempted],
                self.animation.total(preempted),
                done=True,
            ))

        await self._publish(reveal_event(turn.id, 0, turn.total_lines))
        self._reveal_tasks[turn.id] = asyncio.create_task(self._run_reveal(turn.id))

    async def _run_reveal(self, turn_id: str) -> None:
        """Re-arming tick: one line per interval until the turn is complete."""
        try:
            while self.animation.is_active(turn_id):
                await asyncio.sleep(self.config.reveal_interval)
                await self.tick(turn_id)
        finally:
            self._reveal_tasks.pop(turn_id, None)

    async def tick(self, turn_id: str) -> int:
        """Advance one turn by a single line. Completed turns stay unchanged."""
        if not self.animation.is_active(turn_id):
            return self.animation.visible.get(turn_id, 0)
        visible = self.animation.advance(turn_id)
        done = not self.animation.is_active(turn_id)
        await self._publish(reveal_event(
            turn_id, visible, self.animation.total(turn_id), done=done
        ))
        if done:
            logger.debug("Reveal complete for %s (%d lines)", turn_id, visible)
        return visible

    @property
    def animating_id(self) -> Optional[str]:
        return self.animation.active_id

    def visible_code_lines(self, turn: AssistantTurn) -> Tuple[CodeLine, ...]:
        """
        Lines the rendering surface should show right now. A turn that is no
        longer animating with nothing revealed (preempted before its first
        tick) shows everything.
        """
        count = self.animation.visible.get(turn.id)
        if count is None or (count == 0 and not self.animation.is_active(turn.id)):
            return turn.code_lines
        return turn.code_lines[:count]

    # ------------------------------------------------------------------
    # Copy / open
    # ------------------------------------------------------------------

    async def copy(self, content: str) -> None:
        """
        Raise the transient copied flag for a turn the host just put on its
        clipboard. The clipboard write itself belongs to the host's click
        handler; browsers refuse it anywhere else.
        """
        logger.debug("Copied %d chars", len(content))
        if self._copied_task:
            self._copied_task.cancel()
        self.copied = True
        await self._publish(copied_event(True))
        self._copied_task = asyncio.create_task(self._clear_copied())

    async def _clear_copied(self) -> None:
        await asyncio.sleep(self.config.copied_reset)
        self.copied = False
        self._copied_task = None
        await self._publish(copied_event(False))

    async def open_external(self, content: str) -> str:
        """
        Store the text as a blob and return its id. Only the host that asked
        opens it, so nothing is published.
        """
        blob_id = self.blobs.put(content)
        logger.info("Opened blob %s (%d chars)", blob_id, len(content))
        return blob_id

    # ------------------------------------------------------------------
    # Reset / teardown
    # ------------------------------------------------------------------

    async def reset(self) -> None:
        """Drop the conversation and all animation state."""
        for task in self._reveal_tasks.values():
            task.cancel()
        self._reveal_tasks.clear()
        self.turns.clear()
        self.animation.clear()
        await self._publish(reset_event())
        logger.info("Conversation reset")

    async def close(self) -> None:
        """Cancel every pending timer."""
        tasks = list(self._reveal_tasks.values())
        if self._copied_task:
            tasks.append(self._copied_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reveal_tasks.clear()
        self._copied_task = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _append(self, turn: Turn) -> None:
        self.turns.append(turn)
        await self._publish(turn_event(turn))

    async def _publish_status(self) -> None:
        await self._publish(status_event(self.in_flight, self.prompt))

    async def _publish(self, event: Event) -> None:
        self.seq += 1
        event.seq = self.seq
        await self.bus.publish(event)

    def snapshot(self) -> Dict[str, Any]:
        """
        Full state for a newly connected rendering surface. ``seq`` is the
        last event already folded into it; later events carry larger values.
        """
        return {
            "seq": self.seq,
            "turns": [turn.to_dict() for turn in self.turns],
            "visible": dict(self.animation.visible),
            "animating": list(self.animation.active_ids),
            "in_flight": self.in_flight,
            "prompt": self.prompt,
            "copied": self.copied,
        }
