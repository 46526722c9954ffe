"""Command-line interface for the search agent."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer

from .config.loader import DEFAULT_CONFIG_PATH, list_profiles, load_config

app = typer.Typer(
    name="search-agent",
    help="Chat with a model that can search and read the web.",
    add_completion=False,
)


@app.command()
def chat(
    message: Annotated[str, typer.Argument(help="Message to send")],
    deep: Annotated[
        bool,
        typer.Option("--deep", help="Deep research: more iterations, more searches"),
    ] = False,
    force_search: Annotated[
        bool,
        typer.Option("--force-search", help="Always search on the first step"),
    ] = False,
    context_files: Annotated[
        list[Path],
        typer.Option(
            "--context-file",
            help="Text file to answer from (disables web tools; can specify multiple)",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    profile: Annotated[
        str,
        typer.Option("--profile", "-p", help="Config profile (default: AGENT_PROFILE or dev)"),
    ] = None,
    stream: Annotated[
        bool,
        typer.Option("--stream", help="Print raw Server-Sent-Event frames"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: text or json"),
    ] = "text",
):
    """
    Run one chat turn.

    Examples:

        # Quick question
        search-agent chat "What is 2 + 2?"

        # Force a search and print JSON
        search-agent chat "Latest Python release" --force-search --format json

        # Deep research, streamed
        search-agent chat "State of solid-state batteries" --deep --stream

        # Answer from local documents only
        search-agent chat "Summarize section 2" --context-file notes.txt
    """
    if output_format not in ("text", "json"):
        typer.echo("Error: Format must be one of: text, json", err=True)
        raise typer.Exit(1)

    context = "\n\n".join(
        path.read_text(encoding="utf-8") for path in (context_files or [])
    )

    try:
        config = load_config(profile)
    except KeyError as e:
        typer.echo(f"Error: {e.args[0]}", err=True)
        raise typer.Exit(1)

    ok = asyncio.run(
        _chat_async(
            config=config,
            message=message,
            deep=deep,
            force_search=force_search,
            context=context,
            stream=stream,
            output_format=output_format,
        )
    )
    if not ok:
        raise typer.Exit(1)


async def _chat_async(
    config,
    message: str,
    deep: bool,
    force_search: bool,
    context: str,
    stream: bool,
    output_format: str,
) -> bool:
    """Async implementation of chat. Returns False on a run failure."""
    from .orchestration.agent_loop import ChatSession
    from .orchestration.streaming import stream_chat

    try:
        session = ChatSession(config)
        async with session:
            run_config = session.run_config(
                force_search=force_search,
                deep_research=deep,
                context=context,
            )

            if stream:
                answered = False
                async for frame in stream_chat(session.orchestrator, message, config=run_config):
                    if frame.startswith("data: "):
                        answered = answered or json.loads(frame[6:])["type"] == "result"
                    typer.echo(frame, nl=False)
                return answered

            outcome = await session.orchestrator.run(message, config=run_config)
    except ValueError as e:
        # Missing API keys and unsupported backends
        typer.echo(f"Error: {e}", err=True)
        return False

    if output_format == "json":
        payload = outcome.to_payload()
        if outcome.success:
            payload = {"success": True, **payload}
        typer.echo(json.dumps(payload, indent=2))
        return outcome.success

    if not outcome.success:
        typer.echo(f"Error [{outcome.code.value}]: {outcome.error}", err=True)
        return False

    typer.echo(outcome.final_text)

    if outcome.sources:
        typer.echo("\nSources:")
        for i, source in enumerate(outcome.sources, 1):
            typer.echo(f"{i}. {source.title} ({source.domain})")
            typer.echo(f"   {source.url}")

    typer.echo(
        f"\n[{outcome.iterations_used} iteration(s), "
        f"{outcome.tool_calls_used} tool call(s)]",
        err=True,
    )
    return True


@app.command()
def profiles(
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Profiles YAML file"),
    ] = DEFAULT_CONFIG_PATH,
):
    """List the configuration profiles."""
    if not config_path.exists():
        typer.echo(f"Error: Config file {config_path} not found", err=True)
        raise typer.Exit(1)

    for name in list_profiles(config_path):
        profile = load_config(name, config_path)
        typer.echo(
            f"{name}: model={profile.model.backend}"
            f"{'/' + profile.model.model if profile.model.model else ''}, "
            f"search={profile.search.backend}, "
            f"max_iterations={profile.agent.max_iterations} "
            f"(deep {profile.agent.deep_max_iterations})"
        )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
