import argparse
import asyncio
import json
import signal
from collections.abc import Sequence

from paper_search.services.checkpoint import CheckpointStore, SyncCheckpoint


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronize MongoDB publication statistics into the papers index")
    parser.add_argument("command", choices=["run", "status", "reset"], help="run a sync, show or reset the checkpoint")
    parser.add_argument("--checkpoint", type=str, default=None, help="Checkpoint file (defaults to SYNC_CHECKPOINT_FILE)")
    parser.add_argument("--batch-size", type=int, default=None, help="Source records per batch")
    args = parser.parse_args(argv)
    if args.batch_size is not None and args.batch_size < 1:
        parser.error("--batch-size must be >= 1")
    return args


def _print_checkpoint(checkpoint: SyncCheckpoint) -> None:
    print(json.dumps(checkpoint.model_dump(mode="json"), indent=2))


async def run_sync(checkpoint_path: str | None = None, batch_size: int | None = None) -> SyncCheckpoint:
    from paper_search.clients.embeddings_client import EmbeddingsClient
    from paper_search.clients.search_engine import SearchEngineGateway
    from paper_search.clients.source_store import MongoSourceStore
    from paper_search.services.startup_guards import validate_required_settings
    from paper_search.services.sync_orchestrator import SyncOrchestrator

    validate_required_settings()
    source_store = MongoSourceStore()
    orchestrator = SyncOrchestrator(
        source_store=source_store,
        gateway=SearchEngineGateway(),
        embeddings=EmbeddingsClient(),
        checkpoint_store=CheckpointStore(checkpoint_path),
        batch_size=batch_size,
    )
    orchestrator.recover()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(orchestrator.stop()))
        except NotImplementedError:
            # not supported on Windows event loops
            pass
    try:
        await orchestrator.start()
        return await orchestrator.wait()
    finally:
        source_store.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "status":
        _print_checkpoint(CheckpointStore(args.checkpoint).load())
        return 0
    if args.command == "reset":
        _print_checkpoint(CheckpointStore(args.checkpoint).reset())
        return 0

    from paper_search.core.logging import configure_logging

    configure_logging()
    checkpoint = asyncio.run(run_sync(args.checkpoint, args.batch_size))
    _print_checkpoint(checkpoint)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
