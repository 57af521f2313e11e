from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, List, Protocol, Sequence

from loguru import logger
from langchain_core.messages import HumanMessage, SystemMessage

from .config import LLMConfig
from .llm import get_chat_model
from .personas import PERSONA_PROMPTS, PersonaType, display_name
from .states import Message


class GenerationError(RuntimeError):
    """A persona reply could not be produced (transport error, empty or malformed reply)."""


@dataclass(frozen=True)
class GatewayReply:
    content: str
    fact_checked: bool = False


class ResponseGateway(Protocol):
    async def generate(
        self,
        persona: PersonaType,
        problem: str,
        history: Sequence[Message],
    ) -> GatewayReply: ...


def render_history(history: Sequence[Message], window: int) -> str:
    recent = list(history)[-window:] if window > 0 else list(history)
    lines = []
    for m in recent:
        one_line = " ".join((m.content or "").split())
        lines.append(f"[{display_name(m.persona)}] {one_line}")
    return "\n".join(lines)


def _text_of(content: Any) -> str:
    # Chat models may return a list of content blocks instead of a string.
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "".join(parts)
    raise GenerationError(f"unexpected content type {type(content).__name__}")


class ChatModelGateway:
    """ResponseGateway backed by LangChain chat models.

    The moderator is answered by the search-enabled model and its replies are
    marked as fact-checked. Any failure is raised as GenerationError.
    """

    def __init__(
        self,
        llm: Any = None,
        search_llm: Any = None,
        history_window: int = 12,
    ) -> None:
        self.llm = llm
        self.search_llm = search_llm or llm
        self.history_window = history_window

    @classmethod
    def from_config(cls, config: LLMConfig, history_window: int = 12) -> "ChatModelGateway":
        llm = get_chat_model(config)
        if llm is None:
            raise RuntimeError("chat model not initialized; set PERPLEXITY_API_KEY")
        return cls(llm=llm, search_llm=get_chat_model(config, search=True), history_window=history_window)

    def build_messages(
        self,
        persona: PersonaType,
        problem: str,
        history: Sequence[Message],
    ) -> List[Any]:
        blocks = [f"PROBLEM:\n{problem}"]
        transcript = render_history(history, self.history_window)
        if transcript:
            blocks.append(f"DISCUSSION_SO_FAR:\n{transcript}")
            last = history[-1]
            if last.persona is PersonaType.USER:
                blocks.append(
                    "USER_INPUT: The human participant just spoke. Address their input directly before"
                    " adding your own perspective."
                )
        else:
            blocks.append("OPENING_INSTRUCTION: You are the first to speak. Give your initial take on the problem.")
        if persona is PersonaType.MODERATOR:
            blocks.append(
                "FACT_CHECK: Verify any statistics or factual claims made above against current data"
                " before synthesizing."
            )
        blocks.append("REPLY: Respond now, in character, without repeating what others already said.")
        return [SystemMessage(content=PERSONA_PROMPTS[persona]), HumanMessage(content="\n\n".join(blocks))]

    async def generate(
        self,
        persona: PersonaType,
        problem: str,
        history: Sequence[Message],
    ) -> GatewayReply:
        if persona is PersonaType.USER:
            raise GenerationError("cannot generate a reply for the user persona")
        use_search = persona is PersonaType.MODERATOR
        llm = self.search_llm if use_search else self.llm
        if llm is None:
            raise GenerationError("no chat model configured")

        messages = self.build_messages(persona, problem, history)
        t0 = time.perf_counter()
        try:
            result = await llm.ainvoke(messages)
        except Exception as e:
            raise GenerationError(f"{persona.value} generation failed: {e}") from e
        dt = time.perf_counter() - t0

        text = _text_of(getattr(result, "content", None) or "").strip()
        logger.info(f"llm_call | persona={persona.value} search={use_search} dt={dt:.2f}s chars={len(text)}")
        if not text:
            raise GenerationError(f"{persona.value} returned an empty reply")
        return GatewayReply(content=text, fact_checked=use_search)
