"""Turn controller: the conversational loop between user, LLM and shell."""

from enum import Enum
from typing import Callable, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from .actions import (
    Action,
    ExecuteAction,
    ParseError,
    RequestInformationAction,
    RequestInstallAction,
    parse_action,
)
from .cache import ScriptCache
from .config import YouConfig
from .context import ConversationContext, Message, Role
from .executor import ExecutionError, ExecutionResult, ProcessExecutor, shell_argv
from .information import ContextualInformation
from .llm_handler import LLMError, LLMErrorKind, LLMHandler
from .logging import get_logger
from .prompts import build_command_preamble, build_explain_preamble
from .ui import Level, display_message, display_tree_message, input_message, thinking

logger = get_logger(__name__)

T = TypeVar("T")

EXIT_TOKEN = "e"
CONFIRM_TOKEN = "y"
SAVE_TOKEN = "w"
CLEAR_TOKEN = "c"
SKIP_SAVE_TOKEN = "n"

RETRY_NOTICE = "LLM returned a wrong JSON, retrying..."


class TurnState(str, Enum):
    AWAITING_USER_INPUT = "awaiting-user-input"
    LLM_THINKING = "llm-thinking"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    EXECUTING = "executing"
    IDLE = "idle"


class OracleUnreliable(Exception):
    """The LLM kept failing to produce a well-formed reply."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(
            f"No valid reply from the LLM after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


def request_until_valid(
    llm: LLMHandler,
    messages: Sequence[Message],
    parse: Callable[[str], T],
    max_attempts: int = 0,
) -> T:
    """Ask the LLM with the same messages until ``parse`` accepts the reply.

    ``max_attempts`` of 0 retries without bound.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return parse(llm.generate_json(messages))
        except (LLMError, ParseError) as e:
            logger.debug("Attempt %d rejected: %s", attempt, e)
            if max_attempts and attempt >= max_attempts:
                raise OracleUnreliable(attempt, e) from e
            if isinstance(e, LLMError) and e.kind == LLMErrorKind.TRANSPORT_FAILURE:
                display_tree_message(2, f"LLM request failed ({e}), retrying...")
            else:
                display_tree_message(2, RETRY_NOTICE)


def describe_failure(action: ExecuteAction, error: ExecutionError) -> str:
    """Text recorded in the context after a failed command."""
    report = f"The command `{action.command}` failed: {error}"
    if error.output:
        report += f"\nOutput before the failure:\n{error.output}"
    return report


class CommandLineAgent:
    """Semi-autonomous agent that proposes commands and runs them on approval.

    Every LLM call sees the whole conversation: the preamble, user input,
    the agent's own proposals and the output of each executed command.
    """

    def __init__(
        self,
        config: YouConfig,
        llm: Optional[LLMHandler] = None,
        executor: Optional[ProcessExecutor] = None,
        cache: Optional[ScriptCache] = None,
        information: Optional[ContextualInformation] = None,
        ask: Callable[[str], str] = input_message,
    ):
        self.config = config
        self.llm = llm or LLMHandler(config)
        self.executor = executor or ProcessExecutor(timeout=config.command_timeout)
        self.cache = cache or ScriptCache(config.cache_dir)
        self.ask = ask

        information = information or ContextualInformation(config)
        shell = " ".join(shell_argv("")[:-1])
        self.context = ConversationContext(
            build_command_preamble(information.render(), shell=shell)
        )
        self.state = TurnState.AWAITING_USER_INPUT
        self.last_executed: Optional[ExecuteAction] = None

    def next_action(self, user_input: Optional[str]) -> Action:
        """Record the user's input and obtain the LLM's next action.

        ``None`` asks again without adding a user message, used after a
        failed command whose report is already in the context.
        """
        self.state = TurnState.LLM_THINKING
        if user_input is not None:
            self.context.append(Role.USER, user_input)

        with thinking():
            action = request_until_valid(
                self.llm,
                self.context.snapshot(),
                parse_action,
                self.config.max_llm_attempts,
            )

        logger.debug("LLM proposed %s", action.kind)
        self.context.append(Role.ASSISTANT, action.to_json())
        self.state = TurnState.AWAITING_CONFIRMATION
        return action

    def execute(self, action: ExecuteAction) -> ExecutionResult:
        """Run the command and record its outcome in the context."""
        self.state = TurnState.EXECUTING
        display_message(Level.INFO, f"Start executing command: {action.command}")

        try:
            result = action.execute(self.executor)
        except ExecutionError as e:
            self.context.append(Role.SYSTEM, describe_failure(action, e))
            raise

        self.context.append(
            Role.SYSTEM,
            f"Here is the output of the command/script:\n{result.captured_output}",
        )
        self.last_executed = action
        display_message(Level.INFO, "Commands had been executed successfully.")
        return result

    def save(self, script_name: str, action: ExecuteAction) -> None:
        path = self.cache.add_script(script_name, action.command)
        display_message(Level.INFO, f"Script had been saved to {path}.")

    def run_single(self, instruction: str) -> None:
        """Translate one instruction, run it, and offer to save it."""
        action = self._converse(instruction)
        if action is not None:
            reply = self._ask(
                "Would you like to save the command as a script? "
                "(n for no, type anything to name the script)"
            )
            if reply.strip() != SKIP_SAVE_TOKEN:
                self.save(reply.strip(), action)
        self._finish()

    def run_interactive(self) -> None:
        """Keep taking instructions until the user exits."""
        self.state = TurnState.AWAITING_USER_INPUT
        user_input: Optional[str] = self._ask("Yes, boss. What can I do for you:")

        while user_input is not None and user_input.strip() != EXIT_TOKEN:
            if self._converse(user_input) is None:
                break
            user_input = self._next_instruction()

        self._finish()

    def _converse(self, user_input: str) -> Optional[ExecuteAction]:
        """Turns until a command runs successfully; ``None`` if the user exits."""
        pending: Optional[str] = user_input

        while True:
            action = self.next_action(pending)

            if isinstance(action, RequestInformationAction):
                pending = self._ask(action.describe())
                continue

            if isinstance(action, RequestInstallAction):
                display_message(Level.WARNING, "Some tools are missing.")
                pending = self._ask(
                    f"{action.describe()}\n"
                    "Install them, then type to continue or explain what to do instead"
                )
                continue

            reply = self._ask(
                "Your input: (y for executing the command, e to exit, "
                f"or type to hint LLM)\n{action.describe()}"
            ).strip()
            if reply == EXIT_TOKEN:
                return None
            if reply != CONFIRM_TOKEN:
                pending = reply
                continue

            try:
                self.execute(action)
            except ExecutionError as e:
                display_message(Level.ERROR, str(e))
                pending = None
                continue

            return action

    def _next_instruction(self) -> Optional[str]:
        """Post-execution prompt; ``None`` means exit."""
        while True:
            self.state = TurnState.AWAITING_USER_INPUT
            reply = self._ask(
                "Boss, what else can I do for you (type to instruct, e to exit, "
                "w to save the last command, c to clear the conversation):"
            )
            token = reply.strip()

            if token == EXIT_TOKEN:
                return None
            if token == SAVE_TOKEN:
                if self.last_executed is None:
                    display_message(Level.WARNING, "There is no command to save.")
                    continue
                self.save(self._ask("Name of the script:").strip(), self.last_executed)
                if self._ask("Continue? (y for yes, e for exit):").strip() == EXIT_TOKEN:
                    return None
                continue
            if token == CLEAR_TOKEN:
                self.context.reset(keep_preamble=True)
                self.last_executed = None
                display_message(Level.INFO, "Conversation cleared.")
                continue
            return reply

    def _ask(self, prompt: str) -> str:
        """Prompt until the user types something."""
        while True:
            reply = self.ask(prompt)
            if reply.strip():
                return reply

    def _finish(self) -> None:
        self.state = TurnState.IDLE
        display_message(Level.INFO, "See you boss.")


class CommandExplanation(BaseModel):
    explanation: str


def parse_explanation(raw_text: str) -> CommandExplanation:
    try:
        return CommandExplanation.model_validate_json(raw_text)
    except ValidationError as e:
        raise ParseError(f"Invalid explanation: {e}", raw_text) from e


class CommandLineExplainAgent:
    """One-shot agent that explains a shell command."""

    def __init__(
        self,
        config: YouConfig,
        llm: Optional[LLMHandler] = None,
        information: Optional[ContextualInformation] = None,
    ):
        self.config = config
        self.llm = llm or LLMHandler(config)
        information = information or ContextualInformation(config)
        self.context = ConversationContext(build_explain_preamble(information.render()))

    def explain(self, command: str) -> str:
        self.context.append(Role.USER, command)
        with thinking():
            result = request_until_valid(
                self.llm,
                self.context.snapshot(),
                parse_explanation,
                self.config.max_llm_attempts,
            )
        self.context.append(Role.ASSISTANT, result.explanation)
        return result.explanation
