"""Breedfinder CLI — command-line host for the identify program.

Invariants:
    - One Program per `identify` or `counter` run; the CLI only dispatches and
      renders state
    - Exit code 0 only when the requested result was produced
    - Clients are closed on every exit path

Design Decisions:
    - argparse subcommands: identify (full pipeline), breeds (catalog), match
      (labels → breed without the vision model, handy for checking labels),
      counter (timer feature, prints every count for a number of seconds)
    - --json switches results and errors to JSON on stdout; notifications then
      go to the log instead of the console
    - Rendering is a subscriber printing stage changes, like a view re-render
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from breedfinder.config import Settings, get_settings
from breedfinder.core.classify import classify
from breedfinder.core.domain_types import Classification, SearchResults
from breedfinder.core.errors import BreedFinderError, NoMatchError
from breedfinder.core.remote_data import Failure, Succeed
from breedfinder.core.runtime import EffectContext, run_program
from breedfinder.features import counter, identify
from breedfinder.infrastructure.file_reader import guess_media_type
from breedfinder.infrastructure.notifier import ConsoleNotifier, LoggingNotifier
from breedfinder.infrastructure.observability import setup_logging
from breedfinder.services.breed_catalog import load_breed_index, search_images
from breedfinder.services.environment import build_dog_api, build_environment

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="breedfinder", description="Find the dog breed on a picture.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_identify = sub.add_parser("identify", help="Identify the breed on a picture")
    p_identify.add_argument("picture", type=Path)
    p_identify.add_argument("--limit", type=int, default=5, help="Image URLs to print")
    p_identify.add_argument("--json", action="store_true", help="Print the result as JSON")

    p_breeds = sub.add_parser("breeds", help="List known breeds")
    p_breeds.add_argument("--breed", help="Only list sub-breeds of this breed")
    p_breeds.add_argument("--json", action="store_true", help="Print the names as JSON")

    p_match = sub.add_parser("match", help="Match classifier labels against the catalog")
    p_match.add_argument("labels", nargs="+", metavar="LABEL=PROB")
    p_match.add_argument("--images", type=int, default=0, help="Also fetch N image URLs")
    p_match.add_argument("--json", action="store_true", help="Print the match as JSON")

    p_counter = sub.add_parser("counter", help="Run the timer counter and print each count")
    p_counter.add_argument("--seconds", type=float, default=5.0, help="How long to run")
    p_counter.add_argument("--down", action="store_true", help="Also start counting down")
    return parser


def parse_label(raw: str) -> Classification:
    """'Chihuahua, Mexican dog=0.9' -> Classification. Probability defaults to 1."""
    label, sep, probability = raw.rpartition("=")
    if not sep:
        return Classification(raw, 1.0)
    try:
        return Classification(label, float(probability))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Bad probability in {raw!r}")


async def run_identify(args: argparse.Namespace, settings: Settings) -> int:
    env = build_environment(settings)
    notifier = LoggingNotifier() if args.json else ConsoleNotifier()
    context = EffectContext(notifier=notifier, env=env)
    try:
        program = run_program(
            flags=None, init=identify.init, update=identify.update, context=context,
        )
        rendered = {"stage": program.state.stage}

        def render() -> None:
            stage = program.state.stage
            if stage is not rendered["stage"]:
                rendered["stage"] = stage
                print(f"… {stage.value.replace('_', ' ')}", file=sys.stderr)

        program.subscribe(render)
        path = args.picture if guess_media_type(args.picture) else None
        program.dispatch(identify.PictureSubmitted(path))
        await program.wait_idle()
        return _report(program.state, args)
    finally:
        await env.aclose()


def _report(state: identify.State, args: argparse.Namespace) -> int:
    if isinstance(state.catalog, Failure) and not state.finished:
        print(f"Breed catalog unavailable: {state.catalog.error}", file=sys.stderr)
        return 1
    if not isinstance(state.results, Succeed):
        return 1
    results: SearchResults = state.results.value
    images = list(results.images[: args.limit])
    if args.json:
        print(json.dumps({
            "breed": results.probe.breed,
            "sub_breed": results.probe.sub_breed,
            "confidence": results.probe.confidence,
            "images": images,
        }, indent=2))
        return 0
    print(f"{results.probe.display_name} ({results.probe.confidence:.0%})")
    for url in images:
        print(url)
    return 0


async def run_breeds(args: argparse.Namespace, settings: Settings) -> int:
    async with build_dog_api(settings) as client:
        index = await load_breed_index(client)
    if args.breed:
        if args.breed not in index:
            print(f"Unknown breed: {args.breed}", file=sys.stderr)
            return 1
        names = index.sub_breeds(args.breed)
    else:
        names = list(index)
    if args.json:
        print(json.dumps(names, indent=2))
        return 0
    for name in names:
        print(name)
    return 0


async def run_match(args: argparse.Namespace, settings: Settings) -> int:
    classifications = [parse_label(raw) for raw in args.labels]
    async with build_dog_api(settings) as client:
        index = await load_breed_index(client)
        probe = classify(index, classifications)
        if probe is None:
            if args.json:
                raise NoMatchError([c.label for c in classifications])
            print("No known breed matches these labels", file=sys.stderr)
            return 1
        images = (await search_images(client, probe))[: args.images] if args.images else []
    if args.json:
        print(json.dumps({
            "breed": probe.breed,
            "sub_breed": probe.sub_breed,
            "confidence": probe.confidence,
            "images": images,
        }, indent=2))
        return 0
    print(f"{probe.display_name} ({probe.confidence:.0%})")
    for url in images:
        print(url)
    return 0


async def run_counter(args: argparse.Namespace, settings: Settings) -> int:
    program = run_program(
        flags=None, init=counter.init, update=counter.update,
        context=EffectContext(notifier=LoggingNotifier()),
    )
    program.subscribe(lambda: print(program.state.count, flush=True))
    if args.down:
        program.dispatch(counter.Decrement())
    try:
        await asyncio.sleep(args.seconds)
    finally:
        program.context.cancel()
        await program.wait_idle()
    return 0


COMMANDS = {
    "identify": run_identify,
    "breeds": run_breeds,
    "match": run_match,
    "counter": run_counter,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except BreedFinderError as e:
        logger.debug("Command failed", extra={"error_code": e.code})
        if getattr(args, "json", False):
            print(json.dumps(e.to_dict(), indent=2))
        else:
            print(e.stringify(), file=sys.stderr)
        return 1
    except argparse.ArgumentTypeError as e:
        print(str(e), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
