"""
Boardroom debate orchestration engine.

Modules:
- personas: PersonaType enum, display info and persona system prompts
- states: ConversationState, Message, SchedulerState
- policy: SpeakerPolicy (who speaks next) + factual-claim heuristic
- gateway: ResponseGateway contract + LangChain-backed ChatModelGateway
- scheduler: cancellable timed turn loop
- engine: ConversationEngine facade (start/pause/resume/stop/interrupt)
- storage: JSONL transcript persistence observer
- config / llm: environment configuration and cached chat clients
"""
