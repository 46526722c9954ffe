"""
Agent loop: the tool-use orchestration state machine.

Reasoning -> (ToolExecution -> Reasoning)* -> (forced continuation ->
Reasoning)? -> Synthesis -> Done. Each run owns its transcript and counters;
providers are injected and may be shared between runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence, Union

from ..errors import InvalidInputError, RunCancelled
from ..llm.protocols import (
    ChatCompletionProvider,
    Message,
    MessageRole,
    ToolCallRequest,
    ToolChoice,
    forced_tool_choice,
)
from ..settings import HEARTBEAT_INTERVAL_SECONDS, MODEL_TIMEOUT_SECONDS
from .cancellation import CancellationToken
from .deduplication import flatten_sources
from .models import RunConfig, RunFailure, RunResult, RunState
from .progress import EventType, ProgressEmitter, ProgressSink
from .prompts import SYNTHESIS_PROMPT, build_system_prompt, continuation_prompt
from .recovery import classify_model_error
from .tools import ToolExecutor, ToolResult, enabled_tools, get_tool_schema

if TYPE_CHECKING:
    from ..config.loader import ProfileConfig

logger = logging.getLogger(__name__)

HistoryEntry = Union[Message, Mapping[str, Any]]


def validate_message(message: Any) -> str:
    """Reject empty or non-text user messages before the loop starts."""
    if not isinstance(message, str) or not message.strip():
        raise InvalidInputError("Message is required and must be a non-empty string.")
    return message.strip()


def normalize_history(history: Sequence[HistoryEntry] | None) -> list[Message]:
    """Convert prior turns to Messages. Mappings need ``role`` and ``content``."""
    messages = []
    for index, entry in enumerate(history or []):
        if isinstance(entry, Message):
            messages.append(entry)
            continue
        if not isinstance(entry, Mapping):
            raise InvalidInputError(f"History entry {index} must be a message object.")
        try:
            role = MessageRole(entry.get("role"))
        except ValueError as e:
            raise InvalidInputError(
                f"History entry {index} has unknown role {entry.get('role')!r}."
            ) from e
        content = entry.get("content")
        if content is not None and not isinstance(content, str):
            raise InvalidInputError(f"History entry {index} content must be text.")
        messages.append(Message(role=role, content=content))
    return messages


class Orchestrator:
    """
    Drives model calls and tool execution for one chat turn at a time.

    Usage:
        orchestrator = Orchestrator(model_provider, ToolExecutor(tavily))
        outcome = await orchestrator.run("What changed in Python 3.13?")
        if outcome.success:
            print(outcome.final_text)
    """

    def __init__(
        self,
        model_provider: ChatCompletionProvider,
        tool_executor: ToolExecutor,
        model_timeout: float = MODEL_TIMEOUT_SECONDS,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    ):
        """
        Initialize the orchestrator.

        Args:
            model_provider: Chat completion provider with tool calling
            tool_executor: Executor for web_search / extract_content
            model_timeout: Timeout for each model call
            heartbeat_interval: Seconds between sink keepalives (<= 0 disables)
        """
        self.model_provider = model_provider
        self.tool_executor = tool_executor
        self.model_timeout = model_timeout
        self.heartbeat_interval = heartbeat_interval

    async def run(
        self,
        message: str,
        history: Sequence[HistoryEntry] | None = None,
        config: RunConfig | None = None,
        progress_sink: ProgressSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> RunResult | RunFailure:
        """
        Run the agent loop for one user message.

        Args:
            message: The user's message
            history: Prior conversation turns
            config: Run settings (defaults to a plain, non-deep run)
            progress_sink: Receives progress events
            cancel_token: Optional cancellation signal

        Returns:
            RunResult on success, RunFailure with a stable code otherwise
        """
        config = config or RunConfig()
        token = cancel_token or CancellationToken()
        emitter = ProgressEmitter(progress_sink)

        try:
            text = validate_message(message)
            prior = normalize_history(history)
        except InvalidInputError as e:
            logger.warning(f"Rejected run input: {e}")
            return RunFailure.from_error(e)

        state = RunState(
            messages=[Message.system(build_system_prompt(config)), *prior, Message.user(text)]
        )
        logger.info(
            f"Starting run: deep={config.deep_research}, "
            f"force_tool={config.force_tool_on_first_step}, "
            f"context={config.has_context}, max_iterations={config.max_iterations}"
        )

        async with emitter.heartbeat(self.heartbeat_interval):
            try:
                return await self._run_loop(state, config, emitter, token)
            except RunCancelled as e:
                logger.info(f"Run cancelled after {state.iteration} iteration(s)")
                return RunFailure.from_error(e, state.iteration)

    async def _run_loop(
        self,
        state: RunState,
        config: RunConfig,
        emitter: ProgressEmitter,
        token: CancellationToken,
    ) -> RunResult | RunFailure:
        tools = get_tool_schema(enabled_tools(config))

        while state.iteration < config.max_iterations:
            token.raise_if_cancelled()
            state.iteration += 1

            await emitter.emit(
                EventType.THINKING,
                "Thinking..." if state.iteration == 1 else "Analyzing results...",
            )

            try:
                reply = await self._complete(
                    state.messages,
                    tools,
                    self._tool_choice(config, tools, state.iteration),
                    config.temperature,
                    token,
                )
            except RunCancelled:
                raise
            except Exception as e:
                return await self._recover(state, config, emitter, token, e)

            if reply.has_tool_calls and not tools:
                logger.warning("Model requested tools while tools are disabled; ignoring the calls")
                reply = Message.assistant(reply.content)

            if not reply.has_tool_calls:
                if self._should_continue(state, config):
                    state.append(reply)
                    state.append(
                        Message.user(
                            continuation_prompt(
                                state.tool_calls_used, config.min_tool_calls_before_stop
                            )
                        )
                    )
                    state.continuations += 1
                    logger.info(
                        f"Forcing continuation: {state.tool_calls_used} tool calls, "
                        f"minimum {config.min_tool_calls_before_stop}"
                    )
                    await emitter.emit(EventType.THINKING, "Digging deeper...")
                    continue

                if reply.content and reply.content.strip():
                    state.append(reply)
                    state.final_text = reply.content
                else:
                    logger.warning("Model returned an empty answer; falling back to synthesis")
                break

            state.append(reply)
            results = await self._execute_tools(reply.tool_calls, config, emitter, token)
            for result in results:
                self._record(state, result)

        if state.final_text is None:
            if state.iteration >= config.max_iterations:
                logger.info(f"Iteration budget of {config.max_iterations} exhausted")
            try:
                state.final_text = await self._synthesize(state, config, emitter, token)
            except RunCancelled:
                raise
            except Exception as e:
                error = classify_model_error(e)
                logger.error(f"Synthesis failed: {error.kind.value} ({error.detail})")
                if not error.salvaged_text:
                    return RunFailure.from_error(error, state.iteration)
                state.append(Message.assistant(error.salvaged_text))
                state.final_text = error.salvaged_text

        return await self._assemble(state, emitter)

    def _tool_choice(
        self, config: RunConfig, tools: list[dict], iteration: int
    ) -> ToolChoice:
        if not tools:
            return "none"
        offered = {schema["function"]["name"] for schema in tools}
        if iteration == 1 and config.force_tool_on_first_step and config.forced_tool in offered:
            return forced_tool_choice(config.forced_tool)
        return "auto"

    def _should_continue(self, state: RunState, config: RunConfig) -> bool:
        return (
            config.deep_research
            and state.tool_calls_used < config.min_tool_calls_before_stop
            and state.iteration < config.max_iterations
        )

    async def _complete(
        self,
        messages: list[Message],
        tools: list[dict],
        tool_choice: ToolChoice,
        temperature: float,
        token: CancellationToken,
    ) -> Message:
        call = asyncio.wait_for(
            self.model_provider.complete_chat(
                list(messages),
                tools=tools,
                tool_choice=tool_choice,
                temperature=temperature,
            ),
            timeout=self.model_timeout,
        )
        return await token.guard(call)

    async def _execute_tools(
        self,
        calls: list[ToolCallRequest],
        config: RunConfig,
        emitter: ProgressEmitter,
        token: CancellationToken,
    ) -> list[ToolResult]:
        """Run every call of one model reply concurrently, results in call order."""
        logger.info(f"Executing {len(calls)} tool call(s): {[c.name for c in calls]}")

        pending = []
        for call in calls:
            token.raise_if_cancelled()
            pending.append(self.tool_executor.run_call(call, config, emitter))

        return await token.guard(asyncio.gather(*pending))

    def _record(self, state: RunState, result: ToolResult) -> None:
        # Attempts count toward the budget even when the arguments were invalid
        if result.step is not None:
            state.count_tool_call(result.tool_name)
            state.steps.append(result.step)
        if result.success:
            state.successful_tool_calls += 1
            state.sources.append(result.sources)
        state.append(result.to_message())

    async def _synthesize(
        self,
        state: RunState,
        config: RunConfig,
        emitter: ProgressEmitter,
        token: CancellationToken,
    ) -> str:
        """One tool-free completion over the transcript. Its text is final."""
        await emitter.emit(EventType.SYNTHESIZING, "Writing the answer...")
        state.append(Message.user(SYNTHESIS_PROMPT))

        reply = await self._complete(state.messages, [], "none", config.temperature, token)
        state.append(Message.assistant(reply.content))
        return reply.content or ""

    async def _recover(
        self,
        state: RunState,
        config: RunConfig,
        emitter: ProgressEmitter,
        token: CancellationToken,
        exc: Exception,
    ) -> RunResult | RunFailure:
        error = classify_model_error(exc)
        logger.error(
            f"Model call failed on iteration {state.iteration}: "
            f"{error.kind.value} ({error.detail})"
        )

        if error.salvaged_text:
            logger.info("Recovered an answer from the rejected generation")
            state.append(Message.assistant(error.salvaged_text))
            state.final_text = error.salvaged_text
            return await self._assemble(state, emitter)

        if state.successful_tool_calls == 0:
            return RunFailure.from_error(error, state.iteration)

        logger.info(
            f"Attempting degraded synthesis from {state.successful_tool_calls} "
            f"successful tool call(s)"
        )
        await emitter.emit(
            EventType.ERROR,
            "The AI service failed; composing an answer from the research gathered so far.",
        )
        try:
            state.final_text = await self._synthesize(state, config, emitter, token)
        except RunCancelled:
            raise
        except Exception as e:
            retry_error = classify_model_error(e)
            logger.error(f"Degraded synthesis failed: {retry_error.detail}")
            return RunFailure.from_error(error, state.iteration)

        return await self._assemble(state, emitter)

    async def _assemble(self, state: RunState, emitter: ProgressEmitter) -> RunResult:
        result = RunResult(
            final_text=state.final_text or "",
            sources=flatten_sources(state.sources),
            steps=list(state.steps),
            iterations_used=state.iteration,
            tool_calls_used=state.tool_calls_used,
            tool_calls_by_kind=dict(state.tool_calls_by_kind),
            messages=list(state.messages),
        )
        logger.info(
            f"Run complete: {result.iterations_used} iteration(s), "
            f"{result.tool_calls_used} tool call(s), {len(result.sources)} source(s)"
        )
        await emitter.emit(EventType.COMPLETE, "Done")
        return result


class ChatSession:
    """
    Context manager owning the providers for a series of runs.

    Usage:
        async with ChatSession(load_config("dev")) as session:
            outcome = await session.run("Latest Rust release?", deep_research=True)
    """

    def __init__(
        self,
        config: ProfileConfig,
        model_provider: ChatCompletionProvider | None = None,
        search_provider: Any = None,
    ):
        self.config = config
        self._model_provider = model_provider
        self._search_provider = search_provider
        self._orchestrator: Orchestrator | None = None

    async def __aenter__(self) -> ChatSession:
        from ..config.factory import (
            create_model_provider,
            create_orchestrator,
            create_search_provider,
        )

        if self._model_provider is None:
            self._model_provider = create_model_provider(self.config.model)
        if self._search_provider is None:
            self._search_provider = create_search_provider(self.config.search)

        await self._model_provider.__aenter__()
        try:
            await self._search_provider.__aenter__()
        except BaseException:
            await self._model_provider.__aexit__(None, None, None)
            raise

        self._orchestrator = create_orchestrator(
            self.config,
            model_provider=self._model_provider,
            search_provider=self._search_provider,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self._search_provider.__aexit__(exc_type, exc_val, exc_tb)
        finally:
            await self._model_provider.__aexit__(exc_type, exc_val, exc_tb)
        self._orchestrator = None

    @property
    def orchestrator(self) -> Orchestrator:
        if self._orchestrator is None:
            raise RuntimeError("Session not initialized. Use 'async with' context manager.")
        return self._orchestrator

    def run_config(
        self,
        force_search: bool = False,
        deep_research: bool = False,
        context: str = "",
    ) -> RunConfig:
        return RunConfig.for_request(
            self.config.agent,
            self.config.search,
            force_search=force_search,
            deep_research=deep_research,
            context=context,
        )

    async def run(
        self,
        message: str,
        history: Sequence[HistoryEntry] | None = None,
        force_search: bool = False,
        deep_research: bool = False,
        context: str = "",
        progress_sink: ProgressSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> RunResult | RunFailure:
        return await self.orchestrator.run(
            message,
            history,
            self.run_config(force_search, deep_research, context),
            progress_sink=progress_sink,
            cancel_token=cancel_token,
        )
