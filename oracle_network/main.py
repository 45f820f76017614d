#!/usr/bin/env python3
"""Oracle Network CLI.

Operates a decentralized price oracle network whose state is kept in a CBOR
snapshot file: registers providers and feeds, opens rounds, accepts price
submissions and resolves them into reputation-weighted median prices.

Each invocation loads the snapshot, runs one operation and saves the snapshot
if the operation succeeded.
"""

import argparse
import dataclasses
import logging
import os
import sys
from decimal import ROUND_DOWN, Decimal, DecimalException, localcontext

from .src import state_codec
from .src.errors import InvalidInput, OracleNetworkError
from .src.NetworkConfig import NetworkConfig
from .src.OracleNetwork import OracleNetwork, system_clock

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "oracle_state.cbor"
# Decimal digits available while scaling prices; covers the 128-bit range.
FIXED_POINT_PRECISION = 80


def to_fixed(value: str, decimals: int) -> int:
    """Convert a decimal price string into a fixed point integer.

    Digits beyond ``decimals`` are truncated.
    Example: ``to_fixed("0.1234", 8)`` returns ``12340000``.

    :param value: Decimal string such as ``"101.5"``.
    :param decimals: Number of decimals of the feed.
    :returns: Price scaled by ``10**decimals``.
    :raises InvalidInput: If ``value`` is not a finite decimal number.
    """
    try:
        amount = Decimal(value.strip())
        if not amount.is_finite():
            raise InvalidInput(f"Not a finite number: {value!r}")
        with localcontext() as ctx:
            ctx.prec = FIXED_POINT_PRECISION
            scaled = amount.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_DOWN)
    except DecimalException as e:
        raise InvalidInput(f"Not a representable decimal number: {value!r}") from e
    return int(scaled)


def env_timestamp(name: str = "ORACLE_NOW") -> int | None:
    """Read an optional Unix timestamp from the environment.

    :raises InvalidInput: If the variable is set but not an integer.
    """
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidInput(f"{name} must be an integer, got {raw!r}") from e


def from_fixed(value: int, decimals: int) -> str:
    """Format a fixed point integer as a decimal string."""
    return str(Decimal(value).scaleb(-decimals))


def print_record(record) -> None:
    """Print a dataclass record as ``field: value`` lines."""
    for name, value in dataclasses.asdict(record).items():
        print(f"{name}: {value}")


# Commands


def cmd_init(network: OracleNetwork, args: argparse.Namespace) -> None:
    admin = args.admin or args.caller
    if not admin:
        raise InvalidInput("An admin address is required (--admin or ORACLE_ADMIN)")
    cfg = network.initialize(admin, NetworkConfig.from_env(admin))
    print_record(cfg)


def cmd_pause(network: OracleNetwork, args: argparse.Namespace) -> None:
    network.set_paused(args.caller, True)


def cmd_unpause(network: OracleNetwork, args: argparse.Namespace) -> None:
    network.set_paused(args.caller, False)


def cmd_register(network: OracleNetwork, args: argparse.Namespace) -> None:
    print_record(network.register_oracle(args.provider, args.stake))


def cmd_deactivate(network: OracleNetwork, args: argparse.Namespace) -> None:
    network.deactivate_oracle(args.caller or args.provider, args.provider)


def cmd_reactivate(network: OracleNetwork, args: argparse.Namespace) -> None:
    network.reactivate_oracle(args.caller or args.provider, args.provider)


def cmd_add_stake(network: OracleNetwork, args: argparse.Namespace) -> None:
    record = network.add_stake(args.provider, args.amount)
    print(f"stake: {record.stake}")


def cmd_heartbeat(network: OracleNetwork, args: argparse.Namespace) -> None:
    network.heartbeat(args.provider)


def cmd_slash(network: OracleNetwork, args: argparse.Namespace) -> None:
    print_record(
        network.slash_oracle(args.caller, args.provider, args.stake_penalty, args.rep_penalty)
    )


def cmd_create_feed(network: OracleNetwork, args: argparse.Namespace) -> None:
    feed = network.create_feed(args.caller, args.feed_id, args.base, args.quote, args.decimals)
    print_record(feed)


def cmd_update_feed(network: OracleNetwork, args: argparse.Namespace) -> None:
    feed = network.get_feed(args.feed_id)
    staleness = feed.staleness_override_secs if args.staleness is None else args.staleness
    min_oracles = feed.min_oracles_override if args.min_oracles is None else args.min_oracles
    print_record(
        network.update_feed(args.caller, args.feed_id, not args.inactive, staleness, min_oracles)
    )


def cmd_open_round(network: OracleNetwork, args: argparse.Namespace) -> None:
    round_id = network.open_round(args.caller, args.feed_id)
    print(f"round_id: {round_id}")


def cmd_submit(network: OracleNetwork, args: argparse.Namespace) -> None:
    feed = network.get_feed(args.feed_id)
    price = to_fixed(args.price, feed.decimals)
    network.submit_price(args.provider, args.feed_id, price, args.confidence)
    print(f"submitted: {price}")


def cmd_resolve(network: OracleNetwork, args: argparse.Namespace) -> None:
    print_record(network.resolve_round(args.caller, args.feed_id))


def cmd_price(network: OracleNetwork, args: argparse.Namespace) -> None:
    if args.unchecked:
        resolved = network.get_latest_price_unchecked(args.feed_id)
    else:
        resolved = network.get_price(args.feed_id)
    feed = network.get_feed(args.feed_id)
    print_record(resolved)
    print(f"price_decimal: {from_fixed(resolved.price, feed.decimals)}")


def cmd_history(network: OracleNetwork, args: argparse.Namespace) -> None:
    for entry in network.get_price_history(args.feed_id):
        print(f"{entry.round_id}\t{entry.price}\t{entry.timestamp}\t{entry.num_oracles}")


def cmd_round(network: OracleNetwork, args: argparse.Namespace) -> None:
    round_ = network.get_current_round(args.feed_id)
    print_record(round_)
    subs = network.get_round_submissions(args.feed_id, round_.round_id)
    print(f"submissions: {len(subs)}")


def cmd_oracle(network: OracleNetwork, args: argparse.Namespace) -> None:
    print_record(network.get_oracle(args.provider))
    print_record(network.get_oracle_stats(args.provider))
    print(f"healthy: {network.is_oracle_healthy(args.provider)}")


def cmd_stats(network: OracleNetwork, args: argparse.Namespace) -> None:
    print_record(network.get_network_stats())
    print(f"paused: {network.is_paused()}")


def cmd_enforce_heartbeats(network: OracleNetwork, args: argparse.Namespace) -> None:
    count = network.enforce_heartbeats(args.caller)
    print(f"deactivated: {count}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Oracle Network: Decentralized price aggregation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Initialize the network
  python -m oracle_network.main init --admin 0xAdmin...

  # Create a feed and register providers
  python -m oracle_network.main create-feed XLMUSD XLM USD 8
  python -m oracle_network.main register 0xProvider... 10000000

  # Run a round
  python -m oracle_network.main open-round XLMUSD
  python -m oracle_network.main submit 0xProvider... XLMUSD 0.1234
  python -m oracle_network.main resolve XLMUSD
  python -m oracle_network.main price XLMUSD

Environment variables (CLI args take precedence):
  ORACLE_STATE_FILE, ORACLE_ADMIN, ORACLE_NOW,
  ORACLE_MIN_ORACLES, ORACLE_MAX_ORACLES, ORACLE_SUBMISSION_WINDOW_SECS,
  ORACLE_STALENESS_SECS, ORACLE_OUTLIER_THRESHOLD_BPS, ORACLE_MIN_STAKE,
  ORACLE_HEARTBEAT_INTERVAL, ORACLE_REP_INITIAL, ORACLE_REP_MAX, etc.
""",
    )

    parser.add_argument(
        "--state",
        type=str,
        help=f"CBOR state file (default: {DEFAULT_STATE_FILE})",
        default=os.environ.get("ORACLE_STATE_FILE") or DEFAULT_STATE_FILE,
    )

    parser.add_argument(
        "--caller",
        type=str,
        help="Caller identity for admin and open operations (default: ORACLE_ADMIN)",
        default=os.environ.get("ORACLE_ADMIN"),
    )

    parser.add_argument(
        "--now",
        type=int,
        help="Override the current Unix timestamp (default: ORACLE_NOW or system time)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    def command(name: str, func, mutates: bool, help: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help)
        p.set_defaults(func=func, mutates=mutates)
        return p

    p = command("init", cmd_init, True, "Initialize the network")
    p.add_argument("--admin", type=str, help="Admin address (default: --caller)")

    command("pause", cmd_pause, True, "Pause the network")
    command("unpause", cmd_unpause, True, "Unpause the network")

    p = command("register", cmd_register, True, "Register an oracle provider")
    p.add_argument("provider")
    p.add_argument("stake", type=int)

    for name, func, help in (
        ("deactivate", cmd_deactivate, "Deactivate an oracle provider"),
        ("reactivate", cmd_reactivate, "Reactivate an oracle provider"),
        ("heartbeat", cmd_heartbeat, "Record a provider heartbeat"),
    ):
        command(name, func, True, help).add_argument("provider")

    p = command("add-stake", cmd_add_stake, True, "Add stake for a provider")
    p.add_argument("provider")
    p.add_argument("amount", type=int)

    p = command("slash", cmd_slash, True, "Slash a provider's stake and reputation")
    p.add_argument("provider")
    p.add_argument("stake_penalty", type=int)
    p.add_argument("rep_penalty", type=int)

    p = command("create-feed", cmd_create_feed, True, "Create a price feed")
    p.add_argument("feed_id")
    p.add_argument("base")
    p.add_argument("quote")
    p.add_argument("decimals", type=int)

    p = command("update-feed", cmd_update_feed, True, "Update a price feed")
    p.add_argument("feed_id")
    p.add_argument("--inactive", action="store_true", help="Mark the feed inactive")
    p.add_argument("--staleness", type=int, help="Staleness override in seconds (0 = default)")
    p.add_argument("--min-oracles", dest="min_oracles", type=int,
                   help="Minimum oracles override (0 = default)")

    command("open-round", cmd_open_round, True, "Open a round").add_argument("feed_id")

    p = command("submit", cmd_submit, True, "Submit a price")
    p.add_argument("provider")
    p.add_argument("feed_id")
    p.add_argument("price", help="Decimal price, e.g. 0.1234")
    p.add_argument("--confidence", type=int, default=10_000,
                   help="Confidence in basis points (default: 10000)")

    command("resolve", cmd_resolve, True, "Resolve the current round").add_argument("feed_id")

    p = command("price", cmd_price, False, "Show the latest price")
    p.add_argument("feed_id")
    p.add_argument("--unchecked", action="store_true", help="Skip the staleness check")

    command("history", cmd_history, False, "Show price history").add_argument("feed_id")
    command("round", cmd_round, False, "Show the current round").add_argument("feed_id")
    command("oracle", cmd_oracle, False, "Show a provider").add_argument("provider")
    command("stats", cmd_stats, False, "Show network statistics")
    command("enforce-heartbeats", cmd_enforce_heartbeats, True,
            "Deactivate providers with expired heartbeats")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Oracle Network CLI.

    :param argv: Arguments (default: ``sys.argv[1:]``).
    :returns: Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        now = args.now if args.now is not None else env_timestamp()
        clock = system_clock if now is None else (lambda: now)

        store = state_codec.load(args.state)
        network = OracleNetwork(store, clock=clock)
        args.func(network, args)
        if args.mutates:
            state_codec.save(network.store, args.state)
    except OracleNetworkError as e:
        print(f"error: {e.name} (code {e.code})", file=sys.stderr)
        logger.debug(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
