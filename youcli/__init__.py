"""You - translate natural language into shell commands.

The assistant keeps a conversation with an LLM that answers every turn with
one structured action:

- Execute: a shell command shown for confirmation, then run with its output
  streamed back into the conversation
- Request information: a question for the user
- Request install: tools the user has to install first

Commands that worked can be saved as named scripts and reused without an
LLM round-trip.
"""

from .actions import Action, parse_action
from .agent import CommandLineAgent, CommandLineExplainAgent
from .config import YouConfig
from .context import ConversationContext
from .executor import ProcessExecutor
from .llm_handler import LLMHandler
from .main import app

__version__ = "0.1.0"
__description__ = (
    "Translate natural language into shell commands and run them with your approval."
)

__all__ = [
    "app",
    "Action",
    "parse_action",
    "CommandLineAgent",
    "CommandLineExplainAgent",
    "YouConfig",
    "ConversationContext",
    "ProcessExecutor",
    "LLMHandler",
]
