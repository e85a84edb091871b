#!/usr/bin/env python3
"""
🎯 Preset Load Test Runs
========================
Pre-configured client/request mixes, from a single smoke journey to a swarm.

Usage:
    python run_presets.py http://localhost:8080 smoke
    python run_presets.py http://localhost:8080 heavy
    python run_presets.py http://localhost:8080 swarm --i-know-what-im-doing
"""

import asyncio
import logging
import sys
from typing import Optional, List

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from sockshop_client import LoadTestError
from weavesocks_loadtest import LoadTestConfig, LoadTestCoordinator, configure_logging

console = Console()
logger = logging.getLogger(__name__)

# =============================================================================
# PRESET CONFIGURATIONS
# =============================================================================

PRESETS = {
    "smoke": {
        "name": "🌱 Smoke",
        "description": "One client, one full journey",
        "params": {
            "clients": 1,
            "requests_per_client": 8,
        }
    },
    "gentle": {
        "name": "🚶 Gentle",
        "description": "Two clients, a journey and a bit each",
        "params": {
            "clients": 2,
            "requests_per_client": 10,
        }
    },
    "moderate": {
        "name": "🏃 Moderate Load",
        "description": "Ten clients, a dozen journeys each",
        "params": {
            "clients": 10,
            "requests_per_client": 96,
        }
    },
    "heavy": {
        "name": "🏋️ Heavy Load",
        "description": "Fifty clients, fifty journeys each",
        "params": {
            "clients": 50,
            "requests_per_client": 400,
        }
    },
    "swarm": {
        "name": "🐝 Swarm",
        "description": "500 clients, 250 journeys each, after a 5s countdown",
        "params": {
            "clients": 500,
            "requests_per_client": 2000,
            "start_delay": 5,
        },
        "dangerous": True,
    },
}


def print_presets():
    """Print all available presets."""
    console.print("\n[bold]Available Presets:[/bold]\n")
    for key, preset in PRESETS.items():
        params = preset["params"]
        danger_flag = "[red]⚠️ DANGEROUS[/red] " if preset.get("dangerous") else ""
        console.print(
            f"  {key:<10} {preset['name']:<20} {danger_flag}- {preset['description']} "
            f"[dim]({params['clients']} clients x {params['requests_per_client']} requests)[/dim]"
        )
    console.print("")


async def run_preset(url: str, preset_name: str, dangerous_confirmed: bool = False) -> int:
    """Run a preset against `url`, returning the process exit code."""
    if preset_name not in PRESETS:
        console.print(f"[red]Unknown preset: {preset_name}[/red]")
        print_presets()
        return 1

    preset = PRESETS[preset_name]

    if preset.get("dangerous") and not dangerous_confirmed:
        console.print(Panel(
            f"[bold red]⚠️  WARNING: {preset['name']} is DANGEROUS![/bold red]\n\n"
            f"{preset['description']}\n\n"
            f"[yellow]Only use on systems you own or have permission to test![/yellow]",
            title="⚠️ Dangerous Preset",
            border_style="red"
        ))
        if not Confirm.ask("Do you want to proceed?"):
            console.print("[dim]Cancelled.[/dim]")
            return 0

    console.print(Panel(
        f"[bold]{preset['name']}[/bold]\n\n{preset['description']}",
        title=f"Running Preset: {preset_name}",
        border_style="blue"
    ))

    try:
        config = LoadTestConfig(host=url, **preset["params"])
        summary = await LoadTestCoordinator(config).run()
    except LoadTestError as e:
        logger.error("%s", e)
        return 1

    console.print(f"[green]Done:[/green] {summary.sessions} clients sent {summary.requests} requests")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] in ["--help", "-h", "help"]:
        console.print("[bold]Usage:[/bold] python run_presets.py <URL> [PRESET] [--i-know-what-im-doing]")
        print_presets()
        return 0

    if len(argv) == 1:
        console.print("[red]Please provide both URL and preset name[/red]")
        print_presets()
        return 1

    url, preset = argv[0], argv[1]
    dangerous_confirmed = "--i-know-what-im-doing" in argv

    configure_logging("--verbose" in argv)
    return asyncio.run(run_preset(url, preset, dangerous_confirmed))


if __name__ == "__main__":
    sys.exit(main())
