"""Main application entry point for WaveDictate."""

import sys
import asyncio
import argparse
import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import WaveDictateConfig
from .models.session import TriggerType

logger = logging.getLogger(__name__)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/wavedictate.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - warnings only, the indicator owns the terminal otherwise
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("WaveDictate starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def _size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.0f} MB"


def print_speech_models(console: Console, models: list) -> None:
    table = Table(title="Speech models", show_header=True, header_style="bold magenta")
    table.add_column("Model", style="cyan")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Downloaded", justify="center")
    table.add_column("Selected", justify="center")
    for model in models:
        table.add_row(
            model["id"],
            model["name"],
            _size(model["disk_size"] or model["size"]),
            "✅" if model["downloaded"] else ("⬇️" if model["downloading"] else ""),
            "*" if model["selected"] else "",
        )
    console.print(table)


def print_history(console: Console, page: dict) -> None:
    table = Table(
        title=f"Recordings (page {page['current_page'] + 1} of {max(page['total_pages'], 1)})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("When")
    table.add_column("Duration", justify="right")
    table.add_column("Status")
    table.add_column("Text")
    for record in page["recordings"]:
        table.add_row(
            record.id,
            datetime.fromtimestamp(record.timestamp).strftime("%Y-%m-%d %H:%M"),
            f"{record.duration_seconds:.1f}s",
            record.status,
            escape(record.text),
        )
    console.print(table)

    storage = page["storage"]
    console.print(f"{page['total_count']} recordings, {storage['audio_files']} audio files, "
                  f"{storage['total_size_mb']} MB in {storage['data_directory']}", style="dim")


def print_recording(console: Console, record) -> None:
    lines = [escape(record.text) or "[dim](empty)[/dim]"]
    if record.original_text and record.original_text != record.text:
        lines.append(f"\n[dim]Raw transcript:[/dim] {escape(record.original_text)}")
    if record.audio_file_path:
        lines.append(f"[dim]Audio:[/dim] {escape(record.audio_file_path)}")
    console.print(Panel("\n".join(lines), title=f"{record.id} ({record.status})", border_style="cyan"))


def _progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    )


async def _manage(config: WaveDictateConfig, args: argparse.Namespace, console: Console) -> bool:
    """Run the model and history management flags. Returns False if one failed."""
    from .services import LibraryService

    library = LibraryService(config)
    results = []

    if args.list_models:
        print_speech_models(console, library.speech_models())
        llm = await library.llm_models()
        if llm["success"]:
            names = ", ".join(llm["models"]) or "none"
            console.print(f"LLM models on the server: {names} (selected: {llm['selected'] or 'none'})")
        else:
            console.print(f"LLM models unavailable: {llm['error']}", style="yellow")

    if args.download_model:
        with _progress(console) as progress:
            task = progress.add_task(f"Downloading {args.download_model}", total=100)
            result = await library.download_model(
                args.download_model, lambda p: progress.update(task, completed=p["progress"]))
        results.append(result)

    if args.select_model:
        results.append(library.select_model(args.select_model))

    if args.delete_model:
        results.append(library.delete_model(args.delete_model))

    if args.pull_llm:
        with _progress(console) as progress:
            task = progress.add_task(f"Pulling {args.pull_llm}", total=100)
            result = await library.pull_llm(
                args.pull_llm,
                lambda p: progress.update(task, completed=p["progress"],
                                          description=f"{args.pull_llm}: {p['status']}"))
        results.append(result)

    if args.delete_recording:
        results.append(library.delete_recording(args.delete_recording))

    if args.history is not None:
        print_history(console, library.history_page(args.history))

    if args.show_recording:
        result = library.recording(args.show_recording)
        if result["success"]:
            print_recording(console, result["record"])
        else:
            results.append(result)

    for result in results:
        if result["success"]:
            console.print(f"✅ {result.get('message') or _describe(result)}", style="green")
        else:
            console.print(f"❌ {result['error']}", style="red")
    return all(result["success"] for result in results)


def _describe(result: dict) -> str:
    if "recording_id" in result:
        return f"Deleted recording {result['recording_id']}"
    if "model_id" in result:
        note = "" if result["downloaded"] else " (not downloaded yet)"
        return f"Selected speech model {result['model_id']}{note}"
    if "model" in result:
        return f"Pulled LLM model {result['model']}"
    return "Done"


def _wants_management(args: argparse.Namespace) -> bool:
    return bool(args.list_models or args.download_model or args.delete_model or args.select_model
                or args.pull_llm or args.show_recording or args.delete_recording
                or args.history is not None)


async def _run(config: WaveDictateConfig, record_shortcut: str = None) -> None:
    # Pulls in pyaudio, pynput and faster-whisper
    from .services.dictation_service import DictationService

    service = DictationService(config)
    if record_shortcut:
        await service.startup()
        try:
            print(f"Press the new {record_shortcut} shortcut...")
            shortcut = await service.record_shortcut(TriggerType(record_shortcut))
            print(f"Saved {record_shortcut} shortcut: {shortcut.model_dump(mode='json')}")
        finally:
            await service.shutdown()
        return

    print("WaveDictate is listening. Press Ctrl+C to quit.")
    await service.run()


def main() -> None:
    """Main entry point for WaveDictate application."""
    parser = argparse.ArgumentParser(
        description="WaveDictate - Hotkey voice dictation with local transcription",
        epilog="Hold the hold shortcut (default: Fn) or press the toggle shortcut "
               "(default: Ctrl+Space) to dictate."
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for wavedictate.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--record-shortcut",
        choices=[t.value for t in TriggerType],
        help="Record a new hold or toggle shortcut, save it and exit"
    )

    library = parser.add_argument_group("models and history", "Run, print the result and exit")

    library.add_argument(
        "--list-models",
        action="store_true",
        help="List speech models and the LLM models on the Ollama server"
    )

    library.add_argument(
        "--download-model",
        metavar="MODEL",
        help="Download a speech model (e.g. base.en)"
    )

    library.add_argument(
        "--select-model",
        metavar="MODEL",
        help="Use this speech model from now on"
    )

    library.add_argument(
        "--delete-model",
        metavar="MODEL",
        help="Delete a downloaded speech model"
    )

    library.add_argument(
        "--pull-llm",
        metavar="NAME",
        help="Pull an LLM model onto the Ollama server and use it for enhancement"
    )

    library.add_argument(
        "--history",
        nargs="?",
        const=0,
        type=int,
        metavar="PAGE",
        help="Show recording history, newest first (default page: 0)"
    )

    library.add_argument(
        "--show-recording",
        metavar="ID",
        help="Show one recording in full"
    )

    library.add_argument(
        "--delete-recording",
        metavar="ID",
        help="Delete a recording and its audio file"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"WaveDictate v{__version__}"
    )

    args = parser.parse_args()

    try:
        config = WaveDictateConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    if _wants_management(args):
        try:
            ok = asyncio.run(_manage(config, args, Console()))
        except KeyboardInterrupt:
            print("\n👋 Cancelled")
            sys.exit(1)
        sys.exit(0 if ok else 1)

    try:
        asyncio.run(_run(config, args.record_shortcut))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
