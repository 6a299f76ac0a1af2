"""Main entry point for You CLI."""

from contextlib import contextmanager
from typing import Optional

import typer
from rich.markdown import Markdown
from rich.panel import Panel

from .agent import CommandLineAgent, CommandLineExplainAgent
from .cache import ScriptCache
from .config import (
    ConfigurationError,
    YouConfig,
    initialize_directories,
    load_configuration,
    validate_api_setup,
)
from .executor import ProcessExecutor
from .logging import configure_logging
from .ui import Level, console, display_message

app = typer.Typer(
    name="you",
    help="Translate natural language into shell commands and run them with your approval.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug output and detailed error information",
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config-file", "-c", help="Path to custom configuration file"
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Override the LLM model name"
    ),
):
    """Load configuration once and hand it to the sub-command."""
    config = load_configuration(
        config_file=config_file, debug=debug, model_override=model
    )
    initialize_directories(config)
    configure_logging(config)
    ctx.obj = config


@contextmanager
def cli_errors(config: YouConfig):
    """Map errors escaping a sub-command to messages and exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except (KeyboardInterrupt, EOFError):
        console.print()
        display_message(Level.INFO, "See you boss.")
        raise typer.Exit(0)
    except ConfigurationError as e:
        handle_error(e, config.show_debug)
        console.print(
            "\n[bold]Tip:[/bold] export YOU_OPENAI_API_BASE, YOU_OPENAI_API_KEY "
            "and YOU_OPENAI_MODEL."
        )
        raise typer.Exit(1)
    except Exception as e:
        handle_error(e, config.show_debug)
        raise typer.Exit(1)


@app.command()
def run(
    ctx: typer.Context,
    instruction: Optional[str] = typer.Argument(
        None,
        help="Instruction in natural language. Leave it empty to run interactive mode.",
    ),
):
    """Run a command that is described in natural language."""
    config: YouConfig = ctx.obj
    with cli_errors(config):
        cache = ScriptCache(config.cache_dir)

        if instruction and config.enable_cache:
            display_message(Level.INFO, "Cache has been enabled.")
            if cache.search(instruction) is not None:
                display_message(
                    Level.INFO, f"Cache hit. Using the saved script {instruction}..."
                )
                execute_cached_script(cache, instruction, config)
                return

        validate_api_setup(config)
        agent = CommandLineAgent(config, cache=cache)
        if instruction:
            agent.run_single(instruction)
        else:
            agent.run_interactive()


def execute_cached_script(cache: ScriptCache, script_name: str, config: YouConfig):
    """Run a saved script without consulting the LLM."""
    script = cache.read_script(script_name)
    ProcessExecutor(timeout=config.command_timeout).run(script)


@app.command()
def explain(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="The shell command to explain."),
):
    """Explain a given command."""
    config: YouConfig = ctx.obj
    with cli_errors(config):
        validate_api_setup(config)
        explanation = CommandLineExplainAgent(config).explain(command)
        display_result(explanation, config)


@app.command("list")
def list_scripts(ctx: typer.Context):
    """List all saved scripts in the cache. `ls` for short."""
    config: YouConfig = ctx.obj
    with cli_errors(config):
        scripts = ScriptCache(config.cache_dir).list_scripts()
        if not scripts:
            display_message(Level.INFO, "No scripts saved yet.")
            return
        for name in scripts:
            console.print(f"  [cyan]{name}[/cyan]")


@app.command("remove")
def remove_script(
    ctx: typer.Context,
    script_name: str = typer.Argument(..., help="Name of the script to remove."),
):
    """Remove a specified script from the cache. `rm` for short."""
    config: YouConfig = ctx.obj
    with cli_errors(config):
        ScriptCache(config.cache_dir).delete_script(script_name)
        display_message(Level.INFO, f"Script {script_name} has been removed.")


app.command("ls", hidden=True)(list_scripts)
app.command("rm", hidden=True)(remove_script)


@app.command()
def version():
    """Display the version of You CLI."""
    from . import __description__, __version__

    console.print(f"you version {__version__}")
    console.print(f"Description: {__description__}")


def display_result(result: str, config: YouConfig):
    """Display result with appropriate formatting."""
    if not result:
        return

    if config.rich_output:
        console.print()
        console.print(
            Panel(
                Markdown(result),
                title="[bold green]Explanation[/bold green]",
                border_style="green",
            )
        )
    else:
        console.print("\n[bold green]Explanation:[/bold green]")
        console.print(result, markup=False)


def handle_error(error: Exception, debug: bool = False):
    """Handle and display errors with appropriate formatting."""
    if debug:
        console.print("\n[bold red]Debug Error Details:[/bold red]")
        console.print_exception()
    else:
        display_message(Level.ERROR, f"Error: {error}")
        console.print("[dim]Use --debug for more details[/dim]")


if __name__ == "__main__":
    app()
