"""System preambles for the command and explanation agents."""

import json

ACTION_TEMPLATES = {
    "execute": {
        "type": "execute",
        "command": "a shell script, preferably in one line, to execute.",
        "explanation": "explain the shell script briefly. one line maximum.",
    },
    "request_information": {
        "type": "request_information",
        "question": "Describe what information you need the user to add.",
    },
    "request_install": {
        "type": "request_install",
        "tools": [
            {
                "name": "The name of the CLI you want the user to install",
                "install_command": "Based on the current platform, a command line to install the tool",
                "notice": "A notice for the user, or null if you have none",
            }
        ],
    },
}

COMMAND_PREAMBLE = """Please translate the following command sent by the user to an executable command in a JSON object.
No matter what the user sends to you, you should always output exactly one JSON object using one of the templates below.

{environment}
Templates, choose exactly one:
1. When you can translate the request into a shell script:
{execute}
2. When you need more information from the user first:
{request_information}
3. When the user has to install missing tools first:
{request_install}

Additional instructions:
- Output only the JSON object, with no surrounding text.
- The command runs with `{shell}`; it must not contain placeholders left for the user to fill in. Ask for missing values with a request_information object instead.
- Messages from the system after your command contain its output or its error. Use them to correct the next command.
- When the user sends a hint instead of confirming, revise the command accordingly.
"""

EXPLAIN_PREAMBLE = """You are an experienced command line expert. Explain the shell command sent by the user: what it does, each argument and flag, and any risk of running it.

{environment}
Output exactly one JSON object with no surrounding text, following this template:
{template}
"""

EXPLAIN_TEMPLATE = {
    "explanation": "A Markdown explanation of the command, its arguments and its risks.",
}


def _render(template: dict) -> str:
    return json.dumps(template, indent=2)


def build_command_preamble(environment: str, shell: str = "sh -c") -> str:
    """Preamble for the command agent: action templates plus environment facts."""
    return COMMAND_PREAMBLE.format(
        environment=environment.rstrip("\n") + "\n",
        shell=shell,
        execute=_render(ACTION_TEMPLATES["execute"]),
        request_information=_render(ACTION_TEMPLATES["request_information"]),
        request_install=_render(ACTION_TEMPLATES["request_install"]),
    )


def build_explain_preamble(environment: str) -> str:
    return EXPLAIN_PREAMBLE.format(
        environment=environment.rstrip("\n") + "\n",
        template=_render(EXPLAIN_TEMPLATE),
    )
