"""Command-line client for the live endpoint.

Runs a time-limited voice session through the local microphone and speakers,
optionally streaming a still image as the camera feed, or delegates a single
task to the agent gateway.
"""

import argparse
import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path

from live_client.agent_bridge import AgentBridge
from live_client.audio import AudioBackend, SoundDeviceAudio
from live_client.config import LiveClientConfig
from live_client.credentials import CredentialStore
from live_client.session import SessionSupervisor

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs") / "live_client.yaml"

# How often the image feed offers a frame to the throttle
IMAGE_FEED_PERIOD_S = 0.25

HELP_TEXT = """
Commands:
  /status - Show connection state and time remaining
  /quit   - End the session
  /help   - Show this help
"""


class CLIClient:
    """Interactive live session client."""

    def __init__(
        self,
        config: LiveClientConfig,
        credentials: CredentialStore,
        audio: AudioBackend,
        image_path: Path | None = None,
    ) -> None:
        """Initialize CLI client.

        Args:
            config: Client configuration
            credentials: API key store
            audio: Audio device
            image_path: Optional JPEG streamed as the camera feed
        """
        self.config = config
        self.image_path = image_path
        self.supervisor = SessionSupervisor(config.gemini, credentials, audio)
        self.supervisor.on_change = self._handle_change
        self.running = True
        self._last_status: tuple[str, bool] | None = None

    def _handle_change(self) -> None:
        status = (str(self.supervisor.connection_state), self.supervisor.is_model_speaking)
        if status != self._last_status:
            self._last_status = status
            logger.debug(
                "Session state",
                extra={"state": status[0], "speaking": status[1]},
            )

    def status_line(self) -> str:
        s = self.supervisor
        speaking = " (model speaking)" if s.is_model_speaking else ""
        return f"{s.connection_state}{speaking} - {s.timer_display} remaining"

    async def image_feed(self) -> None:
        """Offer the configured image to the throttle until the session ends."""
        if self.image_path is None:
            return

        jpeg = self.image_path.read_bytes()
        while self.supervisor.is_active:
            self.supervisor.send_video_frame_if_throttled(jpeg)
            await asyncio.sleep(IMAGE_FEED_PERIOD_S)

    async def input_loop(self) -> None:
        """Handle user commands from stdin until the session ends."""
        print(HELP_TEXT)
        lines: asyncio.Queue[str | None] = asyncio.Queue()
        reader = threading.Thread(
            target=_read_stdin, args=(asyncio.get_running_loop(), lines), daemon=True
        )
        reader.start()

        while self.running and self.supervisor.is_active:
            text = await lines.get()
            if text is None:
                break

            command = text.strip().lower()
            if not command:
                continue
            if command == "/quit":
                break
            elif command == "/status":
                print(self.status_line())
            elif command == "/help":
                print(HELP_TEXT)
            else:
                print(f"Unknown command: {command}")
                print("Type /help for available commands")

        self.running = False

    async def wait_for_end(self) -> None:
        while self.running and self.supervisor.is_active:
            await asyncio.sleep(0.1)

    async def run(self) -> int:
        """Run one session.

        Returns:
            Process exit code
        """
        supervisor = self.supervisor
        await supervisor.start_session()

        if supervisor.show_api_key_prompt:
            print("No API key configured. Set GEMINI_API_KEY or pass --api-key.")
            return 2
        if not supervisor.is_active:
            print(f"Failed to start session: {supervisor.error_message}")
            return 1

        print(f"Connected. Session time limit: {supervisor.timer_display}")

        def signal_handler() -> None:
            self.running = False

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        tasks = [
            asyncio.create_task(self.input_loop()),
            asyncio.create_task(self.image_feed()),
        ]
        try:
            await self.wait_for_end()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            for task in tasks:
                task.cancel()

            error = supervisor.error_message
            supervisor.stop_session()
            await supervisor.wait_closed()

        if error:
            print(f"\nSession ended: {error}")
            return 1
        print("\nSession ended.")
        return 0


def _read_stdin(loop: asyncio.AbstractEventLoop, lines: "asyncio.Queue[str | None]") -> None:
    # Runs on a daemon thread
    try:
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, None)
    except RuntimeError:
        return


async def run_delegate(config: LiveClientConfig, task: str) -> int:
    """Send one task to the agent gateway and print the reply."""
    bridge = AgentBridge(config.openclaw)
    try:
        result = await bridge.delegate_task(task)
    finally:
        await bridge.close()

    print(result.content)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Live streaming client for realtime voice + vision sessions"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to client config YAML (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    session_parser = subparsers.add_parser("session", help="Run a live voice session")
    session_parser.add_argument("--api-key", type=str, default=None, help="API key to store")
    session_parser.add_argument(
        "--image", type=Path, default=None, help="JPEG file streamed as the camera feed"
    )
    session_parser.add_argument("--input-device", type=str, default=None)
    session_parser.add_argument("--output-device", type=str, default=None)

    delegate_parser = subparsers.add_parser("delegate", help="Delegate a task to the agent")
    delegate_parser.add_argument("task", type=str, help="Task description")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for CLI client."""
    args = build_parser().parse_args(argv)

    config = LiveClientConfig.from_yaml_with_defaults(args.config)

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "delegate":
        sys.exit(asyncio.run(run_delegate(config, args.task)))

    credentials = CredentialStore(default=config.gemini.api_key, path=config.credentials_path)
    if getattr(args, "api_key", None):
        credentials.set(args.api_key)

    audio = SoundDeviceAudio(
        input_sample_rate=config.gemini.input_sample_rate,
        output_sample_rate=config.gemini.output_sample_rate,
        input_device=getattr(args, "input_device", None),
        output_device=getattr(args, "output_device", None),
    )
    client = CLIClient(config, credentials, audio, image_path=getattr(args, "image", None))

    try:
        code = asyncio.run(client.run())
    except KeyboardInterrupt:
        print("\nExiting...")
        code = 0
    finally:
        audio.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
