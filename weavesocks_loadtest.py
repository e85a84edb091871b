#!/usr/bin/env python3
"""
🧦 Weave Socks Load Test
========================
Creates some fake load in the Weave Socks demo application
(https://microservices-demo.github.io).

Every simulated client replays the same shopping journey against the target
host until its request budget is spent:

    home → login → category → detail → clear cart → add to cart → basket → order

Features:
- Concurrent simulated users via asyncio tasks, joined before exit
- One aiohttp session (and cookie jar) per simulated user
- One catalog fetch per run, one random item shared by all users
- Failed calls are logged and the journey carries on

Requirements:
    pip install aiohttp rich

Usage:
    python weavesocks_loadtest.py --hostname http://localhost:8080
    python weavesocks_loadtest.py -n http://localhost:8080 -c 20 -r 200 -d 5
"""

import asyncio
import argparse
import logging
import random
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Callable, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from sockshop_client import (
    DEFAULT_TIMEOUT,
    Catalog,
    CartRequest,
    EmptyCatalog,
    LoadTestError,
    RequestResult,
    SockShopClient,
    fetch_catalog,
    normalize_host,
)

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

USERNAME = "user"
PASSWORD = "password"


def configure_logging(verbose: bool = False):
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class LoadTestConfig:
    """Settings for one run, built once at start-up."""
    host: str
    clients: int = 2
    requests_per_client: int = 10
    start_delay: int = 0
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        object.__setattr__(self, "host", normalize_host(self.host))
        if self.clients < 0:
            raise ValueError(f"clients must be >= 0, got {self.clients}")
        if self.requests_per_client < 0:
            raise ValueError(f"requests per client must be >= 0, got {self.requests_per_client}")
        if self.start_delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.start_delay}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "LoadTestConfig":
        return cls(
            host=args.hostname,
            clients=args.clients,
            requests_per_client=args.requests,
            start_delay=args.delay,
        )


@dataclass
class RunSummary:
    """What a finished run did."""
    item_id: str
    sessions: int
    requests: int


# =============================================================================
# SESSION SCRIPT
# =============================================================================

class UserAction(Enum):
    """Steps of the shopping journey."""
    HOMEPAGE = "homepage"
    LOGIN = "login"
    BROWSE_CATEGORY = "browse_category"
    VIEW_PRODUCT = "view_product"
    CLEAR_CART = "clear_cart"
    ADD_TO_CART = "add_to_cart"
    VIEW_CART = "view_cart"
    PLACE_ORDER = "place_order"


SCRIPT = (
    UserAction.HOMEPAGE,
    UserAction.LOGIN,
    UserAction.BROWSE_CATEGORY,
    UserAction.VIEW_PRODUCT,
    UserAction.CLEAR_CART,
    UserAction.ADD_TO_CART,
    UserAction.VIEW_CART,
    UserAction.PLACE_ORDER,
)


async def perform_action(client: SockShopClient, action: UserAction, item_id: str) -> RequestResult:
    """Issue the single HTTP call behind one journey step."""
    if action == UserAction.HOMEPAGE:
        return await client.get("")
    elif action == UserAction.LOGIN:
        return await client.login(USERNAME, PASSWORD)
    elif action == UserAction.BROWSE_CATEGORY:
        return await client.get("category.html")
    elif action == UserAction.VIEW_PRODUCT:
        return await client.get(f"detail.html?id={item_id}")
    elif action == UserAction.CLEAR_CART:
        return await client.delete("cart")
    elif action == UserAction.ADD_TO_CART:
        return await client.post("cart", CartRequest(id=item_id, quantity=1).to_dict())
    elif action == UserAction.VIEW_CART:
        return await client.get("basket.html")
    elif action == UserAction.PLACE_ORDER:
        return await client.post("orders")
    raise ValueError(f"Unknown action: {action}")


async def run_session_script(
    client: SockShopClient,
    item_id: str,
    max_requests: int,
    session_index: int = 0,
) -> List[RequestResult]:
    """
    Replay the journey until `max_requests` calls have been issued.

    The budget counts requests, not journeys: a budget that is not a multiple
    of the journey length stops part way through the last one. A failed call
    is logged and the next step runs anyway.
    """
    results = []

    while len(results) < max_requests:
        action = SCRIPT[len(results) % len(SCRIPT)]
        result = await perform_action(client, action, item_id)

        if result.error is not None:
            logger.warning("client %d: %s failed: %s", session_index, action.value, result.error)
        else:
            logger.debug(
                "client %d: %s %s -> %d (%.0fms)",
                session_index, result.method, result.path or "/", result.status_code, result.latency_ms,
            )
        results.append(result)

    return results


# =============================================================================
# COORDINATOR
# =============================================================================

def choose_item_id(catalog: Catalog, rng: Optional[random.Random] = None) -> str:
    """Pick the item every client will look at and buy."""
    if not catalog:
        raise EmptyCatalog("the catalog is empty, there is nothing to buy")
    return (rng or random).choice(catalog).id


class LoadTestCoordinator:
    """
    Runs one load test end to end.

    Waits for the start delay, fetches the catalog, picks the shared item,
    then starts one task per client and waits for all of them.
    """

    def __init__(
        self,
        config: LoadTestConfig,
        rng: Optional[random.Random] = None,
        client_factory: Callable[..., Any] = SockShopClient,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.client_factory = client_factory

    async def run(self) -> RunSummary:
        config = self.config

        if config.start_delay > 0:
            console.print(f"Waiting {config.start_delay} seconds before starting...")
            await asyncio.sleep(config.start_delay)

        console.print(
            f"Running {config.clients} clients with {config.requests_per_client} "
            f"requests per client to {config.host} ..."
        )

        # Fatal errors surface here, before any client starts.
        catalog = await fetch_catalog(config.host, timeout=config.timeout)
        item_id = choose_item_id(catalog, self.rng)
        logger.info("Fetched %d catalog items, every client will use item %s", len(catalog), item_id)

        tasks = [
            asyncio.create_task(self._run_client(index, item_id))
            for index in range(config.clients)
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        summary = RunSummary(item_id=item_id, sessions=len(tasks), requests=0)
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.error("client %d crashed", index, exc_info=outcome)
                continue
            summary.requests += len(outcome)

        return summary

    async def _run_client(self, index: int, item_id: str) -> List[RequestResult]:
        async with self.client_factory(self.config.host, timeout=self.config.timeout) as client:
            return await run_session_script(client, item_id, self.config.requests_per_client, index)


# =============================================================================
# MAIN
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weavesocks-loadtest",
        description="Creates some fake load in the weavesocks demo application",
    )

    parser.add_argument("--clients", "-c", type=int, default=2, help="Number of concurrent clients")
    parser.add_argument("--delay", "-d", type=int, default=0, help="Delay before start (seconds)")
    parser.add_argument("--hostname", "-n", default="", help="Target host url (eg. http://localhost:8080)")
    parser.add_argument("--requests", "-r", type=int, default=10, help="Number of requests per client")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every request")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.hostname:
        err_console.print("Hostname can't be empty")
        return 0

    configure_logging(args.verbose)

    try:
        config = LoadTestConfig.from_args(args)
    except (LoadTestError, ValueError) as e:
        logger.error("%s", e)
        return 1

    try:
        summary = asyncio.run(LoadTestCoordinator(config).run())
    except LoadTestError as e:
        logger.error("%s", e)
        return 1

    console.print(Panel(
        f"Clients: {summary.sessions} | Requests sent: {summary.requests} | Item: {summary.item_id}\n"
        f"[dim]Failed calls are in the log above[/dim]",
        title="🧦 Load test finished",
        border_style="green",
    ))
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
