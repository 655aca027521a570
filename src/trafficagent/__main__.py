"""trafficagent CLI entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

from trafficagent.config import load_sidecar_policy
from trafficagent.manifest import inject_workloads, load_pod, render_sidecar

logger = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--policy",
        type=Path,
        required=True,
        help="Sidecar policy YAML file",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output YAML file (default: stdout)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )


def _write_yaml(documents: list, output: Path | None) -> None:
    if output:
        with open(output, "w") as out:
            yaml.safe_dump_all(documents, out, sort_keys=False)
    else:
        yaml.safe_dump_all(documents, sys.stdout, sort_keys=False)


def _read_documents(stream) -> list:
    return [doc for doc in yaml.safe_load_all(stream) if doc is not None]


def _render(args) -> None:
    policy = load_sidecar_policy(args.policy)
    pod = load_pod(args.pod)
    specs = render_sidecar(pod, policy)
    if not specs.injectable:
        logger.warning("No interceptable ports for %s, no agent container rendered", args.pod)
    _write_yaml([specs.to_dict()], args.output)


def _inject(args) -> None:
    policy = load_sidecar_policy(args.policy)
    if args.file:
        with open(args.file) as f:
            documents = _read_documents(f)
    else:
        documents = _read_documents(sys.stdin)
    _write_yaml(inject_workloads(documents, policy), args.output)


def main():
    parser = argparse.ArgumentParser(
        prog="trafficagent",
        description="Render and inject the traffic-agent sidecar for Kubernetes workloads",
    )

    subparsers = parser.add_subparsers(dest="command")

    # trafficagent render
    render_parser = subparsers.add_parser(
        "render", help="Render the agent container, init container and volumes for a Pod"
    )
    _add_common_arguments(render_parser)
    render_parser.add_argument(
        "--pod",
        type=Path,
        required=True,
        help="Pod (or workload) YAML file the agent is rendered for",
    )

    # trafficagent inject
    inject_parser = subparsers.add_parser(
        "inject", help="Inject the agent into the workloads of a manifest"
    )
    _add_common_arguments(inject_parser)
    inject_parser.add_argument(
        "-f",
        "--file",
        type=Path,
        help="Input YAML file (default: stdin)",
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        if args.command == "render":
            _render(args)
        elif args.command == "inject":
            _inject(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
