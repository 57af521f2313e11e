from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from .states import Message


class TranscriptStore:
    """Append-only JSONL transcripts, one file per conversation id."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    @staticmethod
    def new_conversation_id() -> str:
        return str(uuid.uuid4())

    def path_for(self, conversation_id: str) -> Path:
        if not conversation_id or "/" in conversation_id or "\\" in conversation_id or conversation_id in (".", ".."):
            raise ValueError(f"invalid conversation id: {conversation_id!r}")
        return self.base_dir / f"{conversation_id}.jsonl"

    def append(self, conversation_id: str, message: Message) -> None:
        path = self.path_for(conversation_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(message.to_dict(), ensure_ascii=False) + "\n")

    def load(self, conversation_id: str) -> List[Message]:
        path = self.path_for(conversation_id)
        if not path.exists():
            return []
        messages = []
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                messages.append(Message.from_dict(json.loads(line)))
            except (ValueError, KeyError) as e:
                logger.warning(f"transcript_line_skipped | id={conversation_id} line={lineno} | {e}")
        return messages

    def observer(
        self,
        conversation_id: str,
        forward: Optional[Callable[[Message], None]] = None,
    ) -> Callable[[Message], None]:
        """Message callback that persists each message, then hands it to ``forward``."""

        def _on_message(message: Message) -> None:
            try:
                self.append(conversation_id, message)
            except OSError as e:
                logger.error(f"transcript_write_failed | id={conversation_id} msg={message.id} | {e}")
            if forward is not None:
                forward(message)

        return _on_message
