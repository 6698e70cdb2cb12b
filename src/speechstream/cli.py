"""
Real-time microphone transcription CLI.

Captures audio from the microphone, streams it to the transcription service,
and shows the live level and recognized text until Ctrl+C. The final
transcript is printed on exit, ready to hand to translation or speech
synthesis.

Usage:
    speechstream [--language punjabi] [--device DEVICE_ID]

Environment variables:
    SPEECHSTREAM_API_KEY  - transcription service API key
    SPEECHSTREAM_WS_URL   - endpoint override
    LOG_LEVEL             - DEBUG, INFO, WARNING, ...
"""

import argparse
import asyncio
import signal
import sys

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from speechstream.config import Language, Settings
from speechstream.constants import DEFAULT_WS_URL, LEVEL_CEILING, LEVEL_FLOOR
from speechstream.controller import ControllerSnapshot, SessionController
from speechstream.errors import AudioError, ConfigurationError, StartError
from speechstream.log import setup_logging

METER_WIDTH = 36

console = Console()


def render(snapshot: ControllerSnapshot, language: Language) -> Panel:
    """Build the live status panel for a snapshot."""
    fill = (snapshot.level - LEVEL_FLOOR) / (LEVEL_CEILING - LEVEL_FLOOR)
    filled = int(round(max(0.0, min(1.0, fill)) * METER_WIDTH))
    color = "red" if fill > 0.8 else "yellow" if fill > 0.4 else "green"
    meter = Text("#" * filled, style=color) + Text("-" * (METER_WIDTH - filled), style="dim")

    if snapshot.is_listening:
        status = Text(f"Listening ({language.value}) - Ctrl+C to stop", style="dim")
    elif snapshot.error:
        status = Text(f"Stopped: {snapshot.error}", style="red")
    else:
        status = Text("Not listening", style="dim")

    transcript = Text(snapshot.recognized_text or "(listening...)", style="white" if snapshot.recognized_text else "dim")
    return Panel(
        Group(status, meter, Text(), transcript),
        title="[bold cyan]Live Transcription[/bold cyan]",
        border_style="blue",
        padding=(1, 2),
    )


def list_devices() -> None:
    """Print available audio input devices."""
    from speechstream.capture import portaudio

    console.print("\nAvailable audio input devices:")
    console.print("-" * 50)
    for index, name, is_default in portaudio.list_input_devices():
        default = " (default)" if is_default else ""
        console.print(f"  [{index}] {name}{default}")
    console.print("-" * 50)


async def main(args) -> int:
    """Run one listening session until interrupted. Returns the exit code."""
    try:
        settings = Settings.from_env(api_key=args.api_key, ws_url=args.url, device=args.device)
        language = Language.parse(args.language)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    controller = SessionController.from_settings(settings)
    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()

    def handle_sigint():
        if not stopped.is_set():
            stopped.set()

    try:
        loop.add_signal_handler(signal.SIGINT, handle_sigint)
    except NotImplementedError:
        pass

    with Live(render(controller.snapshot, language), console=console, refresh_per_second=10) as live:

        def on_snapshot(snapshot: ControllerSnapshot) -> None:
            live.update(render(snapshot, language))
            if not snapshot.is_listening and snapshot.error:
                stopped.set()

        unsubscribe = controller.subscribe(on_snapshot)
        try:
            await controller.start(language)
            await stopped.wait()
        except StartError as e:
            console.print(f"[red]Could not start:[/red] {e}")
            return 1
        finally:
            await controller.stop()
            unsubscribe()
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass

    console.print("\nFinal transcript:")
    console.print("-" * 40)
    console.print(controller.recognized_text)
    console.print("-" * 40)
    return 1 if controller.snapshot.error else 0


def run():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Real-time microphone transcription",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List audio devices
    speechstream --list-devices

    # Transcribe Punjabi speech from the default microphone
    speechstream --language punjabi

    # Transcribe with a specific device
    speechstream --device 2

Environment variables:
    SPEECHSTREAM_API_KEY   Transcription service API key
        """,
    )
    parser.add_argument(
        "--language",
        type=str,
        default=Language.ENGLISH.value,
        help=f"Spoken language: {', '.join(language.value for language in Language)} (default: english)",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help=f"WebSocket URL of the transcription service (default: {DEFAULT_WS_URL})",
    )
    parser.add_argument(
        "--device",
        type=int,
        default=None,
        help="Audio input device ID (use --list-devices to see options)",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit",
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="Service API key (or set SPEECHSTREAM_API_KEY env var)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: LOG_LEVEL env var or INFO)",
    )

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    if args.list_devices:
        try:
            list_devices()
        except (AudioError, OSError) as e:
            console.print(f"[red]Could not query audio devices:[/red] {e}")
            sys.exit(1)
        return

    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    run()
