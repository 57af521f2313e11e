from __future__ import annotations

import argparse
import asyncio
import json
import os
import random
import sys
from typing import Any, Dict, List

from loguru import logger

from boardroom.config import AppConfig, clamp_interval
from boardroom.engine import ConversationEngine
from boardroom.gateway import ChatModelGateway
from boardroom.personas import AI_PERSONAS, PersonaType, display_name
from boardroom.policy import SpeakerPolicy
from boardroom.states import Message
from boardroom.storage import TranscriptStore


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run an autonomous AI boardroom debate on a problem statement")
    p.add_argument("--problem", type=str, required=True, help="Problem statement the boardroom should discuss")
    p.add_argument("--max-turns", type=int, default=8, help="Stop after this many persona messages")
    p.add_argument("--interval-ms", type=int, default=None, help="Pause between messages (clamped to 1000-10000)")
    p.add_argument("--seed", type=int, default=None, help="Seed for varied but reproducible speaker selection")
    p.add_argument("--save", action="store_true", help="Write the transcript to TRANSCRIPTS_DIR")
    p.add_argument(
        "--ask",
        choices=[persona.value for persona in AI_PERSONAS],
        default=None,
        help="Get one reply from this persona instead of running the debate",
    )
    return p.parse_args()


async def run(args: argparse.Namespace, config: AppConfig) -> Dict[str, Any]:
    gateway = ChatModelGateway.from_config(config.llm, history_window=config.engine.history_window)
    policy = SpeakerPolicy(
        moderator_every=config.engine.moderator_every,
        rng=random.Random(args.seed) if args.seed is not None else None,
    )
    interval = clamp_interval(args.interval_ms) if args.interval_ms else config.engine.speaking_interval_ms
    engine = ConversationEngine(
        gateway=gateway,
        policy=policy,
        speaking_interval_ms=interval,
        generation_timeout=config.engine.generation_timeout,
    )

    transcript: List[Dict[str, Any]] = []

    def on_message(message: Message) -> None:
        transcript.append(message.to_dict())
        print(f"\n{display_name(message.persona)}:\n{message.content}\n", flush=True)
        if engine.state.conversation_round >= args.max_turns:
            engine.stop_conversation()

    conversation_id = TranscriptStore.new_conversation_id()
    if args.save:
        store = TranscriptStore(config.transcripts_dir)
        engine.set_message_callback(store.observer(conversation_id, forward=on_message))
    else:
        engine.set_message_callback(on_message)

    if args.ask:
        await engine.respond_once(PersonaType(args.ask), problem=args.problem)
    else:
        engine.start_conversation(args.problem)
        await engine.wait_closed()
    state = engine.state
    return {
        "conversation_id": conversation_id,
        "problem": args.problem,
        "rounds": state.conversation_round,
        "topic_focus": state.topic_focus,
        "conversation": transcript,
    }


def main() -> None:
    args = parse_args()
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))
    config = AppConfig.from_env()
    try:
        result = asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.info("boardroom_interrupted | stopped by keyboard")
        return
    print(json.dumps(result, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
