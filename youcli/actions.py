"""Actions the LLM can ask for on each turn and how they are parsed."""

import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional, Type

from pydantic import AliasChoices, BaseModel, Field, ValidationError

if TYPE_CHECKING:
    from .executor import ExecutionResult, ProcessExecutor


class ParseError(Exception):
    """The LLM reply is not valid JSON or matches no action shape."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class NotExecutable(Exception):
    """Raised when an action that needs a human answer is asked to run."""

    def __init__(self, action: "Action"):
        super().__init__(f"'{action.kind}' actions need a response, not a process launch")
        self.action = action


class Action(BaseModel, ABC):
    """Base class for the one decision the LLM makes per turn."""

    kind: ClassVar[str] = ""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable rendering shown before the user responds."""
        pass

    def execute(self, executor: "ProcessExecutor") -> "ExecutionResult":
        raise NotExecutable(self)

    def to_json(self) -> str:
        """Serialize with the discriminant so the LLM sees its own choice."""
        data = {"type": self.kind}
        data.update(self.model_dump(exclude_none=True))
        return json.dumps(data, ensure_ascii=False)


class ExecuteAction(Action):
    """Run a shell script after the user confirms it."""

    kind: ClassVar[str] = "execute"

    command: str
    explanation: str

    def describe(self) -> str:
        return f"    > {self.command}\n        * {self.explanation}"

    def execute(self, executor: "ProcessExecutor") -> "ExecutionResult":
        return executor.run(self.command)


class RequestInformationAction(Action):
    """Ask the user a question before proposing a command."""

    kind: ClassVar[str] = "request_information"

    question: str = Field(
        validation_alias=AliasChoices("question", "request_additional_information")
    )

    def describe(self) -> str:
        return self.question


class ToolToInstall(BaseModel):
    """A CLI the user needs to install before the task can proceed."""

    name: str = Field(validation_alias=AliasChoices("name", "cli_name"))
    install_command: str = Field(
        validation_alias=AliasChoices(
            "install_command", "suggested_installation_command"
        )
    )
    notice: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("notice", "additional_notices")
    )


class RequestInstallAction(Action):
    """Ask the user to install one or more tools."""

    kind: ClassVar[str] = "request_install"

    tools: List[ToolToInstall] = Field(
        min_length=1,
        validation_alias=AliasChoices("tools", "request_clis_to_install"),
    )

    def describe(self) -> str:
        lines = ["Please install the following tools:"]
        for tool in self.tools:
            lines.append(f"    - {tool.name}: {tool.install_command}")
            if tool.notice:
                lines.append(f"        * {tool.notice}")
        return "\n".join(lines)


# Structural matching order when no discriminant is present.
ACTION_TYPES: List[Type[Action]] = [
    ExecuteAction,
    RequestInformationAction,
    RequestInstallAction,
]

_ACTIONS_BY_KIND: Dict[str, Type[Action]] = {
    action_type.kind: action_type for action_type in ACTION_TYPES
}


def parse_action(raw_text: str) -> Action:
    """Parse one LLM reply into exactly one action.

    A ``"type"`` field selects the variant directly; without one the first
    variant whose required fields validate wins.

    Raises:
        ParseError: if the text is not a JSON object or matches no variant.
    """
    try:
        data = json.loads(raw_text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Invalid JSON: {e}", raw_text) from e

    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object", raw_text)

    kind = data.get("type")
    if kind is not None:
        action_type = _ACTIONS_BY_KIND.get(kind) if isinstance(kind, str) else None
        if action_type is None:
            raise ParseError(f"Unknown action type: {kind!r}", raw_text)
        try:
            return action_type.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"Invalid '{kind}' action: {e}", raw_text) from e

    for action_type in ACTION_TYPES:
        try:
            return action_type.model_validate(data)
        except ValidationError:
            continue

    raise ParseError("JSON matches none of the known action shapes", raw_text)
