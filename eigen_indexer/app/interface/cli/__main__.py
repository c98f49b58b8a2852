import asyncio
import inspect
import logging
from datetime import datetime

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from eigen_indexer.app.application.services.sync_stream import StreamKey
from eigen_indexer.app.domain.metrics import Frequency, Variant
from eigen_indexer.app.interface.tasks import TASKS
from eigen_indexer.app.interface.tasks.metrics_task import (
    HISTORICAL_SERIES,
    current_metrics_task,
    historical_metrics_task,
)
from eigen_indexer.app.interface.tasks.sync_streams_task import sync_stream_task


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

_DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"]

app = typer.Typer()
indexer_app = typer.Typer(help="cli for syncing EigenLayer chain events.")
metrics_app = typer.Typer(help="cli for reading aggregated EigenLayer metrics.")
app.add_typer(indexer_app, name="indexer")
app.add_typer(metrics_app, name="metrics")


def _optional_block(raw: str) -> int | None:
    raw = raw.strip().lower()
    if raw in ("", "cursor", "latest"):
        return None
    return int(raw)


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]
    params = inspect.signature(task).parameters
    kwargs: dict[str, object] = {}

    # per-stream tasks forward **kwargs to sync_stream_task
    if "kwargs" in params:
        kwargs["from_block"] = _optional_block(
            inquirer.text(message="From block (empty = stream cursor):", default="").execute()
        )
        kwargs["to_block"] = _optional_block(
            inquirer.text(message="To block (empty = latest):", default="").execute()
        )

    kwargs["on_decode_error"] = inquirer.select(
        message="On undecodable log:",
        choices=["abort", "skip"],
        default="abort",
    ).execute()

    asyncio.run(task(**kwargs))


@indexer_app.command("sync")
def sync(
    stream: StreamKey = typer.Argument(..., help="Stream to sync."),
    from_block: int | None = typer.Option(None, "--from-block", help="Defaults to the stream cursor."),
    to_block: int | None = typer.Option(None, "--to-block", help="Defaults to the latest block."),
    on_decode_error: str = typer.Option("abort", "--on-decode-error", help="abort | skip"),
) -> None:
    if on_decode_error not in ("abort", "skip"):
        raise typer.BadParameter("--on-decode-error must be 'abort' or 'skip'")
    report = asyncio.run(
        sync_stream_task(
            stream=stream,
            from_block=from_block,
            to_block=to_block,
            on_decode_error=on_decode_error,  # type: ignore[arg-type]
        )
    )
    typer.echo(
        f"{report.stream_key}: {len(report.batches)} batches, "
        f"{report.records_written} records, last block {report.last_committed_block}"
    )


@metrics_app.command("historical")
def historical(
    series: str = typer.Argument(..., help=f"One of: {', '.join(sorted(HISTORICAL_SERIES))}"),
    start_at: datetime | None = typer.Option(
        None, "--start-at", formats=_DATETIME_FORMATS, help="Defaults to the network genesis time."
    ),
    end_at: datetime | None = typer.Option(None, "--end-at", formats=_DATETIME_FORMATS, help="Defaults to now."),
    frequency: str = typer.Option(Frequency.HOURLY.value, "--frequency", help="1h | 1d | 7d"),
    variant: Variant = typer.Option(Variant.CUMULATIVE, "--variant"),
    address: str | None = typer.Option(None, "--address", help="Strategy, AVS or operator address."),
) -> None:
    asyncio.run(
        historical_metrics_task(
            series=series,
            start_at=start_at,
            end_at=end_at,
            frequency=frequency,
            variant=variant.value,
            address=address,
        )
    )


@metrics_app.command("current")
def current() -> None:
    asyncio.run(current_metrics_task())


def main() -> None:
    typer.echo(LOGO)
    app()


LOGO = r"""
     ______ _                   _____           _
    |  ____(_)                 |_   _|         | |
    | |__   _  __ _  ___ _ __    | |  _ __   __| | _____  _____ _ __
    |  __| | |/ _` |/ _ \ '_ \   | | | '_ \ / _` |/ _ \ \/ / _ \ '__|
    | |____| | (_| |  __/ | | | _| |_| | | | (_| |  __/>  <  __/ |
    |______|_|\__, |\___|_| |_||_____|_| |_|\__,_|\___/_/\_\___|_|
               __/ |
              |___/

      --- Eigen Indexer CLI ---
    """


if __name__ == "__main__":
    main()
