"""Command-line entry point for one-off requests."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Sequence

from .exceptions import NetworkError
from .models import HostResponse
from .network import Network
from .options import GlobalOptions
from .transport import HttpxTransport, RequestPrimitive


def _parse_pairs(values: Sequence[str], separator: str, what: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition(separator)
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"{what} must look like key{separator}value: {item!r}")
        pairs[key.strip()] = value.strip()
    return pairs


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netchain-request")
    parser.add_argument("uri")
    parser.add_argument("--method", default="GET")
    parser.add_argument("--base-uri", default=None)
    parser.add_argument("--content-type", default=None)
    parser.add_argument("--data", action="append", default=[], metavar="KEY=VALUE")
    parser.add_argument("--header", action="append", default=[], metavar="KEY:VALUE")
    parser.add_argument("--retry", type=int, default=0)
    parser.add_argument("--json", action="store_true", dest="as_json")
    return parser


def _render(value: Any, as_json: bool) -> str:
    if as_json:
        return json.dumps(value, indent=2, sort_keys=True, default=str)
    if isinstance(value, HostResponse):
        return "" if value.data is None else str(value.data)
    return str(value)


async def _run(args: argparse.Namespace, primitive: RequestPrimitive | None) -> int:
    transport = None
    if primitive is None:
        transport = HttpxTransport()
        primitive = transport
    network = Network(primitive)
    network.config(GlobalOptions(base_uri=args.base_uri, default_content_type=args.content_type))
    try:
        chain = network.any(
            args.uri,
            _parse_pairs(args.data, "=", "--data") or None,
            args.method,
            _parse_pairs(args.header, ":", "--header") or None,
        )
        if args.retry:
            chain = chain.enable_retry(args.retry)
        if args.as_json:
            chain = chain.json()
        try:
            value = await chain
        except NetworkError as exc:
            print(f"Request failed: {exc}", file=sys.stderr)
            return 1
        print(_render(value, args.as_json))
        return 0
    finally:
        if transport is not None:
            await transport.aclose()


def _main(argv: Sequence[str] | None = None, *, primitive: RequestPrimitive | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.retry < 0:
        parser.error("--retry must be non-negative")
    try:
        return asyncio.run(_run(args, primitive))
    except (argparse.ArgumentTypeError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2


def main() -> None:
    raise SystemExit(_main())
