"""Live protocol state machine.

Drives one transport connection through the setup handshake and streaming
phases. All state mutation happens on the event loop that calls connect();
media arriving from other threads must be marshalled onto that loop first.

Three background activities exist per connection:
- receive loop: consumes inbound frames until cancelled or the socket fails
- send loop: drains the outbound queue in FIFO order
- setup wait: races setupComplete against the setup timeout
"""

import asyncio
import logging
from collections.abc import Callable

from live_client.config import GeminiConfig
from live_client.credentials import CredentialStore
from live_client.errors import (
    ConfigurationError,
    HandshakeTimeoutError,
    ProtocolDecodeError,
    TransportError,
)
from live_client.protocol import (
    GoAway,
    RealtimeInputMessage,
    ServerContent,
    SetupComplete,
    SetupMessage,
    decode_server_message,
)
from live_client.setup_wait import PendingSetupWait
from live_client.state import ConnectionPhase, ConnectionState
from live_client.transport.base import NORMAL_CLOSURE, LiveTransport
from live_client.transport.websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)

# Frames longer than this are truncated in debug logs
LOG_PREVIEW_CHARS = 200


class LiveService:
    """Client side of one live session connection.

    Events are plain callbacks assigned by the owner:

    - on_audio_received(pcm: bytes)
    - on_turn_complete()
    - on_interrupted()
    - on_disconnected(reason: str | None)
    - on_state_changed(state: ConnectionState, is_model_speaking: bool)
    """

    def __init__(
        self,
        config: GeminiConfig,
        credentials: CredentialStore | None = None,
        transport_factory: Callable[[], LiveTransport] = WebSocketTransport,
        send_queue_size: int = 256,
    ) -> None:
        """Initialize live service.

        Args:
            config: Endpoint and session configuration
            credentials: API key store (falls back to config.api_key)
            transport_factory: Creates a fresh transport per connect attempt
            send_queue_size: Maximum outbound messages waiting to be sent
        """
        self._config = config
        self._credentials = credentials
        self._transport_factory = transport_factory
        self._send_queue_size = send_queue_size

        self._state = ConnectionState.DISCONNECTED
        self._is_model_speaking = False

        self.on_audio_received: Callable[[bytes], None] | None = None
        self.on_turn_complete: Callable[[], None] | None = None
        self.on_interrupted: Callable[[], None] | None = None
        self.on_disconnected: Callable[[str | None], None] | None = None
        self.on_state_changed: Callable[[ConnectionState, bool], None] | None = None

        self._transport: LiveTransport | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._send_task: asyncio.Task[None] | None = None
        self._send_queue: asyncio.Queue[str] | None = None
        self._setup_wait: PendingSetupWait | None = None
        self._connecting = False

        # Bumped whenever the current connection is torn down, so that work
        # belonging to an older attempt can tell it is stale.
        self._generation = 0
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_model_speaking(self) -> bool:
        return self._is_model_speaking

    @property
    def has_pending_setup(self) -> bool:
        return self._setup_wait is not None

    async def connect(self) -> bool:
        """Connect and wait for the setup handshake.

        Returns:
            True if the server completed setup before the timeout and before
            disconnect() was called, False otherwise
        """
        if self._connecting:
            logger.warning("Connect already in progress, ignoring")
            return False

        if self._state.phase not in (ConnectionPhase.DISCONNECTED, ConnectionPhase.ERROR):
            logger.warning("Connect called while connected", extra={"state": str(self._state)})
            return False

        try:
            url = self._endpoint_url()
        except ConfigurationError as e:
            logger.error("Cannot connect", extra={"error": str(e)})
            self._set_state(ConnectionState.error(str(e)))
            return False

        self._connecting = True
        try:
            return await self._connect(url)
        finally:
            self._connecting = False

    async def _connect(self, url: str) -> bool:
        generation = self._generation
        wait = PendingSetupWait()
        self._setup_wait = wait
        self._set_state(ConnectionState.CONNECTING)

        transport = self._transport_factory()
        self._transport = transport
        try:
            await transport.open(url)
        except TransportError as e:
            if generation == self._generation:
                self._transport = None
                self._setup_wait = None
                self._set_state(ConnectionState.error(f"Connection failed: {e}"))
            wait.resolve(False)
            return False

        if generation != self._generation:
            # disconnect() ran while the socket was opening
            await transport.close(NORMAL_CLOSURE)
            return False

        self._set_state(ConnectionState.SETTING_UP)
        self._send_queue = asyncio.Queue(maxsize=self._send_queue_size)
        self._enqueue(
            SetupMessage.create(self._config.model, self._config.system_instruction).to_json()
        )
        self._send_task = asyncio.create_task(self._send_loop(transport, self._send_queue))
        self._receive_task = asyncio.create_task(self._receive_loop(transport, generation))

        logger.info("Setup message queued", extra={"model": self._config.model})

        try:
            setup_ok = await wait.wait(self._config.setup_timeout_s)
        except HandshakeTimeoutError as e:
            if self._setup_wait is wait:
                self._setup_wait = None
            if generation == self._generation:
                logger.warning(
                    "Setup timed out", extra={"timeout_s": self._config.setup_timeout_s}
                )
                self._shutdown_connection()
                self._set_state(ConnectionState.error(str(e)))
            return False

        if self._setup_wait is wait:
            self._setup_wait = None
        return setup_ok

    def disconnect(self) -> None:
        """Tear down the connection. Idempotent and safe from any state."""
        if self._state.phase is not ConnectionPhase.DISCONNECTED:
            logger.info("Disconnecting", extra={"state": str(self._state)})

        self._shutdown_connection()
        self._set_state(ConnectionState.DISCONNECTED)
        self._set_speaking(False)

    async def wait_closed(self) -> None:
        """Wait for transport closes scheduled by disconnect() to finish."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def send_audio_chunk(self, pcm: bytes) -> bool:
        """Queue a 16kHz PCM chunk for sending.

        Returns:
            True if the chunk was queued, False if it was dropped
        """
        if not self._state.is_ready:
            return False
        return self._enqueue(RealtimeInputMessage.audio(pcm).to_json())

    def send_video_frame(self, jpeg: bytes) -> bool:
        """Queue a JPEG frame for sending.

        Returns:
            True if the frame was queued, False if it was dropped
        """
        if not self._state.is_ready:
            return False
        return self._enqueue(RealtimeInputMessage.video(jpeg).to_json())

    # Send path

    def _enqueue(self, text: str) -> bool:
        if self._send_queue is None:
            return False
        try:
            self._send_queue.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("Send queue full, dropping message")
            return False
        return True

    async def _send_loop(self, transport: LiveTransport, queue: asyncio.Queue[str]) -> None:
        while True:
            text = await queue.get()
            try:
                await transport.send(text)
            except TransportError as e:
                # Connection loss is reported by the receive loop
                logger.warning("Send failed", extra={"error": str(e)})
            except Exception as e:
                logger.error("Unexpected send error", extra={"error": str(e)})

    # Receive path

    async def _receive_loop(self, transport: LiveTransport, generation: int) -> None:
        try:
            async for raw in transport.receive():
                self._handle_frame(raw)
                if generation != self._generation:
                    return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Receive error", extra={"error": str(e)})
            self._handle_connection_lost(str(e), generation)
            return

        self._handle_connection_lost("Connection closed", generation)

    def _handle_connection_lost(self, reason: str, generation: int) -> None:
        if generation != self._generation:
            return

        self._shutdown_connection()
        self._set_state(ConnectionState.DISCONNECTED)
        self._set_speaking(False)
        self._emit(self.on_disconnected, reason)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            message = decode_server_message(raw)
        except ProtocolDecodeError as e:
            logger.debug("Dropping undecodable frame", extra={"error": str(e)})
            return

        if message is None:
            if logger.isEnabledFor(logging.DEBUG):
                preview = raw if isinstance(raw, str) else raw[:LOG_PREVIEW_CHARS].decode(
                    "utf-8", errors="replace"
                )
                logger.debug("Ignoring frame", extra={"preview": preview[:LOG_PREVIEW_CHARS]})
            return

        if isinstance(message, SetupComplete):
            self._handle_setup_complete()
        elif isinstance(message, GoAway):
            self._handle_go_away(message)
        elif isinstance(message, ServerContent):
            self._handle_server_content(message)

    def _handle_setup_complete(self) -> None:
        if self._state.phase is not ConnectionPhase.SETTING_UP:
            logger.debug("Unexpected setupComplete", extra={"state": str(self._state)})
            return

        self._set_state(ConnectionState.READY)
        logger.info("Setup complete")

        wait, self._setup_wait = self._setup_wait, None
        if wait is not None:
            wait.resolve(True)

    def _handle_go_away(self, message: GoAway) -> None:
        logger.info("GoAway received", extra={"time_left_s": message.seconds})

        self._shutdown_connection()
        self._set_state(ConnectionState.DISCONNECTED)
        self._set_speaking(False)
        self._emit(
            self.on_disconnected,
            f"Server closing connection (time left: {message.seconds}s)",
        )

    def _handle_server_content(self, message: ServerContent) -> None:
        if message.interrupted:
            self._set_speaking(False)
            self._emit(self.on_interrupted)
            return

        for chunk in message.audio_chunks:
            self._set_speaking(True)
            self._emit(self.on_audio_received, chunk)

        if message.turn_complete:
            self._set_speaking(False)
            self._emit(self.on_turn_complete)

    # State

    def _shutdown_connection(self) -> None:
        """Cancel loops, close the transport, and fail any pending setup."""
        self._generation += 1

        current = asyncio.current_task()
        for task in (self._receive_task, self._send_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._receive_task = None
        self._send_task = None
        self._send_queue = None

        transport, self._transport = self._transport, None
        if transport is not None:
            self._close_in_background(transport)

        wait, self._setup_wait = self._setup_wait, None
        if wait is not None:
            wait.resolve(False)

    def _close_in_background(self, transport: LiveTransport) -> None:
        task = asyncio.create_task(transport.close(NORMAL_CLOSURE))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return

        if not self._state.can_transition_to(new_state.phase):
            raise ValueError(f"Invalid state transition: {self._state} → {new_state}")

        old_state = self._state
        self._state = new_state

        logger.info(
            "Connection state transition",
            extra={"from_state": str(old_state), "to_state": str(new_state)},
        )
        self._emit(self.on_state_changed, self._state, self._is_model_speaking)

    def _set_speaking(self, speaking: bool) -> None:
        if speaking == self._is_model_speaking:
            return

        self._is_model_speaking = speaking
        self._emit(self.on_state_changed, self._state, self._is_model_speaking)

    def _emit(self, callback: Callable[..., None] | None, *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Event handler failed")

    def _endpoint_url(self) -> str:
        if self._credentials is not None:
            api_key = self._credentials.get()
        else:
            api_key = self._config.api_key

        url = self._config.endpoint_url(api_key)
        if url is None:
            raise ConfigurationError("No API key configured")
        return url
