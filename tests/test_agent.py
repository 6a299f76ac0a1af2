"""Tests for the turn controller and the explain agent."""

import json
import os

import pytest

from youcli.actions import ExecuteAction, ParseError, parse_action
from youcli.agent import (
    RETRY_NOTICE,
    CommandLineAgent,
    CommandLineExplainAgent,
    OracleUnreliable,
    TurnState,
    request_until_valid,
)
from youcli.cache import SHEBANG, ScriptCache
from youcli.context import Message, Role
from youcli.executor import (
    ExecutionError,
    ExecutionErrorKind,
    ExecutionResult,
    ProcessExecutor,
)
from youcli.llm_handler import LLMError, LLMErrorKind, LLMResponse

LIST_FILES = {"command": "ls", "explanation": "List files"}


def reply(payload):
    """A provider response carrying ``payload`` as JSON text."""
    if not isinstance(payload, str):
        payload = json.dumps(payload)
    return LLMResponse(content=payload, model="test-model")


class Script:
    """Answers prompts from a fixed list of replies, recording each prompt."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.replies.pop(0)


@pytest.fixture
def executor(mocker):
    executor = mocker.MagicMock(spec=ProcessExecutor)
    executor.run.return_value = ExecutionResult(
        captured_output="a.txt\nb.txt\n", succeeded=True, exit_code=0
    )
    return executor


@pytest.fixture
def cache(sample_config):
    return ScriptCache(sample_config.cache_dir)


@pytest.fixture
def make_agent(sample_config, llm, executor, cache, information):
    def factory(*replies, **overrides):
        options = dict(
            llm=llm,
            executor=executor,
            cache=cache,
            information=information,
            ask=Script(*replies),
        )
        options.update(overrides)
        return CommandLineAgent(sample_config, **options)

    return factory


def sent_messages(mock_provider, call=-1):
    """Messages the provider received on the given call."""
    return mock_provider.generate_response.await_args_list[call].args[0]


def non_assistant(agent):
    return [m for m in agent.context.snapshot() if m.role != Role.ASSISTANT]


class TestSingleInstruction:
    @pytest.mark.skipif(os.name == "nt", reason="requires sh")
    def test_list_files_end_to_end(
        self, sample_config, llm, mock_provider, cache, information, temp_dir
    ):
        (temp_dir / "marker.txt").write_text("x")
        mock_provider.generate_response.return_value = reply(
            {"command": f"ls {temp_dir}", "explanation": "List files"}
        )
        agent = CommandLineAgent(
            sample_config,
            llm=llm,
            executor=ProcessExecutor(timeout=10, display=lambda chunk: None),
            cache=cache,
            information=information,
            ask=Script("y", "n"),
        )
        before = len(non_assistant(agent))

        agent.run_single("list files in current directory")

        messages = non_assistant(agent)
        assert len(messages) == before + 2
        assert messages[-2].role == Role.USER
        assert messages[-2].content == "list files in current directory"
        assert messages[-1].role == Role.SYSTEM
        assert "marker.txt" in messages[-1].content
        assert mock_provider.generate_response.await_count == 1
        assert agent.state == TurnState.IDLE

    def test_preamble_describes_environment(self, make_agent, mock_provider):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("y", "n")

        agent.run_single("list files")

        first = sent_messages(mock_provider)[0]
        assert first["role"] == "system"
        assert "System: TestOS" in first["content"]

    def test_assistant_reply_is_recorded(self, make_agent, mock_provider):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("y", "n")

        agent.run_single("list files")

        assistant = [
            m for m in agent.context.snapshot() if m.role == Role.ASSISTANT
        ]
        assert len(assistant) == 1
        assert parse_action(assistant[0].content) == ExecuteAction(**LIST_FILES)

    def test_confirmation_shows_command(self, make_agent, mock_provider):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("y", "n")

        agent.run_single("list files")

        assert "> ls" in agent.ask.prompts[0]
        assert "List files" in agent.ask.prompts[0]

    def test_exit_at_confirmation_runs_nothing(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("e")

        agent.run_single("list files")

        executor.run.assert_not_called()
        assert agent.ask.replies == []
        assert agent.state == TurnState.IDLE

    def test_hint_asks_again_with_user_message(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.side_effect = [
            reply(LIST_FILES),
            reply({"command": "ls -la", "explanation": "List all files"}),
        ]
        agent = make_agent("show hidden files too", "y", "n")

        agent.run_single("list files")

        last = sent_messages(mock_provider)[-1]
        assert last == {"role": "user", "content": "show hidden files too"}
        executor.run.assert_called_once_with("ls -la")

    def test_blank_replies_reprompt(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("", "   ", "y", "n")

        agent.run_single("list files")

        executor.run.assert_called_once_with("ls")
        assert mock_provider.generate_response.await_count == 1

    def test_request_information(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.side_effect = [
            reply({"question": "Which directory?"}),
            reply({"command": "ls /tmp", "explanation": "List /tmp"}),
        ]
        agent = make_agent("/tmp", "y", "n")

        agent.run_single("list files somewhere")

        assert agent.ask.prompts[0] == "Which directory?"
        assert sent_messages(mock_provider)[-1] == {"role": "user", "content": "/tmp"}
        executor.run.assert_called_once_with("ls /tmp")

    def test_request_install(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.side_effect = [
            reply({"tools": [{"name": "jq", "install_command": "apt install jq"}]}),
            reply({"command": "jq . a.json", "explanation": "Pretty print"}),
        ]
        agent = make_agent("installed", "y", "n")

        agent.run_single("pretty print a.json")

        assert "jq: apt install jq" in agent.ask.prompts[0]
        executor.run.assert_called_once_with("jq . a.json")

    def test_failed_command_is_reported_to_llm(
        self, make_agent, mock_provider, executor
    ):
        mock_provider.generate_response.side_effect = [
            reply({"command": "lss", "explanation": "Typo"}),
            reply(LIST_FILES),
        ]
        executor.run.side_effect = [
            ExecutionError(
                ExecutionErrorKind.NON_ZERO_STATUS,
                "Process exited with non-zero status: 127",
                output="sh: lss: not found\n",
                exit_code=127,
            ),
            ExecutionResult("a.txt\n", True, 0),
        ]
        agent = make_agent("y", "y", "n")

        agent.run_single("list files")

        second_call = sent_messages(mock_provider)
        assert second_call[-1]["role"] == "system"
        assert "lss" in second_call[-1]["content"]
        assert "not found" in second_call[-1]["content"]
        users = [m for m in second_call if m["role"] == "user"]
        assert users == [{"role": "user", "content": "list files"}]
        assert agent.last_executed == ExecuteAction(**LIST_FILES)

    def test_timed_out_command_is_reported(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.side_effect = [
            reply({"command": "sleep 100", "explanation": "Wait"}),
            reply(LIST_FILES),
        ]
        executor.run.side_effect = [
            ExecutionError(
                ExecutionErrorKind.TIMED_OUT, "Command timed out after 30 seconds"
            ),
            ExecutionResult("", True, 0),
        ]
        agent = make_agent("y", "e")

        agent.run_single("wait a bit")

        failure = [
            m for m in agent.context.snapshot() if m.role == Role.SYSTEM
        ][-1]
        assert "timed out" in failure.content

    def test_save_after_success(self, make_agent, mock_provider, cache):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("y", "list-files")

        agent.run_single("list files")

        assert cache.list_scripts() == ["list-files"]
        assert cache.read_script("list-files") == SHEBANG + "ls"

    def test_skip_save(self, make_agent, mock_provider, cache):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("y", "n")

        agent.run_single("list files")

        assert cache.list_scripts() == []


class TestRetry:
    def test_retry_on_malformed_reply(self, make_agent, mock_provider, mocker):
        notice = mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.side_effect = [
            reply("Sorry, I can't produce JSON today."),
            reply(LIST_FILES),
        ]
        agent = make_agent()

        action = agent.next_action("list files")

        assert action == ExecuteAction(**LIST_FILES)
        assert mock_provider.generate_response.await_count == 2
        notice.assert_called_once_with(2, RETRY_NOTICE)
        assert sent_messages(mock_provider, 0) == sent_messages(mock_provider, 1)

    def test_retry_on_wrong_shape(self, make_agent, mock_provider, mocker):
        notice = mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.side_effect = [
            reply({"command": "ls"}),
            reply(LIST_FILES),
        ]

        make_agent().next_action("list files")

        assert notice.call_count == 1

    def test_retry_on_transport_failure(self, make_agent, mock_provider, mocker):
        notice = mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.side_effect = [
            LLMError(LLMErrorKind.TRANSPORT_FAILURE, "connection refused"),
            reply(LIST_FILES),
        ]

        make_agent().next_action("list files")

        message = notice.call_args.args[1]
        assert "LLM request failed" in message
        assert "connection refused" in message

    def test_gives_up_after_max_attempts(
        self, make_agent, mock_provider, sample_config, mocker
    ):
        mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.return_value = reply("never JSON")
        agent = make_agent()

        with pytest.raises(OracleUnreliable) as excinfo:
            agent.next_action("list files")

        assert excinfo.value.attempts == sample_config.max_llm_attempts
        assert mock_provider.generate_response.await_count == 5
        assert isinstance(excinfo.value.last_error, LLMError)

    def test_zero_means_unbounded(self, llm, mock_provider, mocker):
        mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.side_effect = [reply("nope")] * 7 + [
            reply(LIST_FILES)
        ]

        action = request_until_valid(
            llm, [Message(Role.USER, "list files")], parse_action, max_attempts=0
        )

        assert action == ExecuteAction(**LIST_FILES)
        assert mock_provider.generate_response.await_count == 8

    def test_parse_errors_are_retried(self, mocker):
        mocker.patch("youcli.agent.display_tree_message")
        llm = mocker.MagicMock()
        llm.generate_json.side_effect = ['{"x": 1}', '{"x": 2}']
        parse = mocker.MagicMock(side_effect=[ParseError("bad", '{"x": 1}'), "ok"])

        assert request_until_valid(llm, ["m"], parse) == "ok"
        assert llm.generate_json.call_count == 2


class TestInteractive:
    def test_exit_immediately(self, make_agent, mock_provider):
        agent = make_agent("e")

        agent.run_interactive()

        mock_provider.generate_response.assert_not_called()
        assert agent.state == TurnState.IDLE

    def test_follow_up_keeps_context(self, make_agent, mock_provider):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("list files", "y", "now again", "y", "e")

        agent.run_interactive()

        assert mock_provider.generate_response.await_count == 2
        second = sent_messages(mock_provider)
        assert {"role": "user", "content": "list files"} in second
        assert second[-1] == {"role": "user", "content": "now again"}
        outputs = [
            m for m in second if m["content"].startswith("Here is the output")
        ]
        assert len(outputs) == 1

    def test_save_last_command_and_continue(self, make_agent, mock_provider, cache):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("list files", "y", "w", "my-ls", "y", "e")

        agent.run_interactive()

        assert cache.list_scripts() == ["my-ls"]
        assert agent.ask.replies == []

    def test_save_then_exit(self, make_agent, mock_provider, cache):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("list files", "y", "w", "my-ls", "e")

        agent.run_interactive()

        assert cache.list_scripts() == ["my-ls"]
        assert agent.state == TurnState.IDLE

    def test_clear_resets_to_preamble(self, make_agent, mock_provider, cache):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("list files", "y", "c", "w", "e")

        agent.run_interactive()

        snapshot = agent.context.snapshot()
        assert len(snapshot) == 1
        assert snapshot[0].role == Role.SYSTEM
        assert agent.last_executed is None
        assert cache.list_scripts() == []

    def test_exit_at_confirmation_ends_session(self, make_agent, mock_provider, executor):
        mock_provider.generate_response.return_value = reply(LIST_FILES)
        agent = make_agent("list files", "e")

        agent.run_interactive()

        executor.run.assert_not_called()
        assert agent.ask.replies == []


class TestExplainAgent:
    def test_explain(self, sample_config, llm, mock_provider, information):
        mock_provider.generate_response.return_value = reply(
            {"explanation": "Lists directory contents."}
        )
        agent = CommandLineExplainAgent(sample_config, llm=llm, information=information)

        assert agent.explain("ls -la") == "Lists directory contents."
        assert sent_messages(mock_provider)[-1] == {"role": "user", "content": "ls -la"}

    def test_explain_retries_wrong_shape(
        self, sample_config, llm, mock_provider, information, mocker
    ):
        notice = mocker.patch("youcli.agent.display_tree_message")
        mock_provider.generate_response.side_effect = [
            reply({"command": "ls"}),
            reply({"explanation": "Lists files."}),
        ]
        agent = CommandLineExplainAgent(sample_config, llm=llm, information=information)

        assert agent.explain("ls") == "Lists files."
        notice.assert_called_once_with(2, RETRY_NOTICE)
