"""Command-line interface for gemini-craft."""

from __future__ import annotations

import logging
import sys
import time

import click
from rich.console import Console

from gemini_craft.config import load_config
from gemini_craft.errors import GeminiCraftError
from gemini_craft.llm.client import GeminiClient

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


@click.command()
@click.argument("prompt")
@click.option("--system", "-s", "system_instruction", default=None,
              help="System instruction to guide the model")
@click.option("--stream", is_flag=True, help="Print text as it is generated")
@click.option("--model", "-m", default=None, help="Model id (overrides config)")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to gemini_craft.yaml (auto-detected from CWD or ~/.gemini_craft/)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(prompt: str, system_instruction: str | None, stream: bool,
         model: str | None, config_path: str | None, verbose: bool):
    """Generate content with Gemini for PROMPT."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        config, config_file = load_config(config_path, model=model)
        if verbose:
            source = config_file or "defaults"
            err_console.print(f"[dim]Config: {source} | Model: {config.model}[/dim]")
        client = GeminiClient(config)
    except FileNotFoundError as e:
        err_console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except GeminiCraftError as e:
        err_console.print(f"[red]{e.kind.value}: {e.message}[/red]")
        sys.exit(1)

    start = time.monotonic()
    try:
        if stream:
            for delta in client.generate(prompt, system_instruction, stream=True):
                console.print(delta, end="", markup=False, soft_wrap=True)
            console.print()
        else:
            text = client.generate(prompt, system_instruction)
            console.print(text, markup=False, soft_wrap=True)
    except GeminiCraftError as e:
        err_console.print(f"[red]{e.kind.value}: {e.message}[/red]")
        sys.exit(1)
    finally:
        client.close()

    if verbose:
        err_console.print(f"[dim]({time.monotonic() - start:.1f}s)[/dim]")


if __name__ == "__main__":
    main()
