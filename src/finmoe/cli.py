"""Command-line entry point for FinMoE."""

import argparse
import asyncio
import logging
from typing import List, Optional

from finmoe.api.service import DispatchService, create_service
from finmoe.common.config.settings import Config
from finmoe.common.constants import SimulationConstants
from finmoe.common.exceptions import FinMoEException
from finmoe.common.logging import configure_logging
from finmoe.simulation.generator import SyntheticRequestGenerator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dispatch financial classification requests across expert agents"
    )
    parser.add_argument("--requests", type=int, default=0,
                        help="Number of synthetic requests to submit immediately")
    parser.add_argument("--type", dest="request_type", type=str, default=None,
                        help="Submit a single request with this type label")
    parser.add_argument("--priority", type=str, default="medium",
                        choices=["low", "medium", "high"], help="Priority for --type")
    parser.add_argument("--generate-for", type=float, default=0.0,
                        help="Run the synthetic generator for this many seconds")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility")
    parser.add_argument("--kill-switch", action="store_true",
                        help="Disable all inference calls (stub analyses, fallback routing)")
    parser.add_argument("--check-connection", action="store_true",
                        help="Check connectivity to the inference provider and exit")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Log level (defaults to FINMOE_LOG_LEVEL)")
    return parser


async def run(args: argparse.Namespace, config: Config) -> int:
    service = create_service(config=config, kill_switch=True if args.kill_switch else None)

    if args.check_connection:
        ok = await service.check_connection()
        print(f"Inference provider reachable: {ok}")
        return 0 if ok else 1

    generator = SyntheticRequestGenerator(service.submit, seed=args.seed)

    if args.request_type:
        service.submit(args.request_type, args.priority)
    for _ in range(args.requests):
        generator.submit_one()

    if args.generate_for > 0:
        generator.start()
        try:
            await asyncio.sleep(args.generate_for)
        finally:
            await generator.stop()

    await service.shutdown()
    print_summary(service)
    return 0


def print_summary(service: DispatchService) -> None:
    print("=" * 70)
    print("FINMOE RUN SUMMARY")
    print("=" * 70)

    for request in reversed(service.get_requests()):
        agents = ", ".join(request.assigned_agents) or "-"
        duration = f"{request.processing_time:.1f}s" if request.processing_time is not None else "-"
        print(f"  {request.id}  {request.type:<18} {request.status.value:<10} {duration:>7}  [{agents}]")

    print("\nWorkers:")
    for worker in service.get_workers():
        print(
            f"  {worker.name:<22} {worker.status.value:<10} load={worker.current_load:5.1f}% "
            f"queue={len(worker.processing_queue)} scaling={worker.is_scaling}"
        )

    print("\nDecisions:")
    for log in service.get_logs():
        if log.message.startswith("FINAL DECISION") or log.level.value == "error":
            print(f"  [{log.source}] {log.message}")

    summary = service.status().metrics
    if summary:
        print(f"\nSuccess rate: {summary['success_rate']:.1%}  "
              f"avg response: {summary['avg_response_time']:.2f}s  "
              f"requests: {summary['total_requests']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.requests < 0 or args.generate_for < 0:
        print("--requests and --generate-for must be non-negative")
        return 2

    try:
        config = Config()
    except FinMoEException as e:
        print(f"Configuration error: {e.message}")
        return 2

    configure_logging((args.log_level or config.log_level.value).upper())
    logger.info(f"FinMoE starting in {config.environment.value} mode")
    if not (args.request_type or args.requests or args.generate_for or args.check_connection):
        args.requests = len(SimulationConstants.REQUEST_TYPES)

    try:
        return asyncio.run(run(args, config))
    except FinMoEException as e:
        logger.error(f"FinMoE failed: {e.message}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
