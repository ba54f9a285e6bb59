"""IPC server implementation using Unix domain sockets."""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional, Set

from pydantic import BaseModel, ValidationError

from .controller import PlayerController, SubmitStatus
from .ipc_models import (
    AckResponse,
    AddedResponse,
    AddFileCommand,
    AddFolderCommand,
    ClearCommand,
    CommandWrapper,
    ErrorResponse,
    FileInfoCommand,
    FileInfoModel,
    FileInfoResponse,
    NextCommand,
    PauseCommand,
    PlayCommand,
    PlayerStatusModel,
    PreviousCommand,
    ResponseWrapper,
    SeekCommand,
    SelectCommand,
    ShutdownCommand,
    StateNotification,
    StatusCommand,
    StatusResponse,
    StopCommand,
    SubscribeCommand,
    TrackEndedCommand,
    TrackModel,
    TransformCommand,
    VolumeCommand,
)
from .library import LibraryError
from .playlist import PlaylistError, Track

logger = logging.getLogger(__name__)

# Size limit for incoming messages (64KB should be plenty for commands)
MAX_MESSAGE_SIZE = 64 * 1024
MESSAGE_TERMINATOR = b"\n"


def _track_models(tracks: List[Track]) -> List[TrackModel]:
    return [TrackModel(name=t.name, path=str(t.path), size=t.size) for t in tracks]


class IPCServer:
    """Handles IPC communication over Unix domain socket."""

    def __init__(
        self,
        socket_path: Path,
        controller: PlayerController,
        shutdown_event: asyncio.Event,
    ):
        """Initialize the IPC server.

        Args:
            socket_path: Path to the Unix domain socket
            controller: Player controller owning all player state
            shutdown_event: Event to signal daemon shutdown
        """
        self.socket_path = socket_path
        self.controller = controller
        self.shutdown_event = shutdown_event

        self._server: Optional[asyncio.Server] = None
        self._client_tasks: Set[asyncio.Task] = set()
        self._subscribers: Set[asyncio.StreamWriter] = set()
        self._broadcast_tasks: Set[asyncio.Task] = set()

        # Register for state updates
        self.controller.add_observer(self._on_state_change)

    def _on_state_change(self, status: PlayerStatusModel) -> None:
        """Handle state change notifications."""
        if not self._subscribers:
            return

        notification = ResponseWrapper(root=StateNotification(status=status))

        # Create tasks for broadcasting to avoid blocking
        task = asyncio.create_task(self._broadcast_notification(notification))
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)

    async def _broadcast_notification(self, notification: ResponseWrapper) -> None:
        """Broadcast a notification to all subscribers."""
        if not self._subscribers:
            return

        data = notification.model_dump_json().encode("utf-8") + MESSAGE_TERMINATOR

        # Copy set to avoid modification during iteration
        subscribers = list(self._subscribers)

        for writer in subscribers:
            if writer.is_closing():
                self._subscribers.discard(writer)
                continue

            try:
                writer.write(data)
                await writer.drain()
            except Exception as e:
                logger.warning(f"Error broadcasting to subscriber: {e}")
                self._subscribers.discard(writer)

    async def _send_response(
        self, writer: asyncio.StreamWriter, response: BaseModel
    ) -> None:
        """Send a response to a client.

        Args:
            writer: StreamWriter to send through
            response: Response model to send
        """
        try:
            response_json = ResponseWrapper(root=response).model_dump_json()
            writer.write(response_json.encode("utf-8") + MESSAGE_TERMINATOR)
            await writer.drain()
            logger.debug(f"Sent response: {response_json}")
        except Exception as e:
            logger.error(f"Error sending response: {e}")

    async def _send_error(self, writer: asyncio.StreamWriter, message: str) -> None:
        await self._send_response(writer, ErrorResponse(message=message))

    async def _handle_add_file_command(
        self, writer: asyncio.StreamWriter, command: AddFileCommand
    ) -> None:
        """Handle AddFile command.

        Args:
            writer: StreamWriter to send response through
            command: AddFile command with the selected path
        """
        logger.info(f"Handling AddFile command: {command.path}")
        track = self.controller.add_file(command.path)
        tracks = [track] if track else []
        await self._send_response(
            writer, AddedResponse(count=len(tracks), tracks=_track_models(tracks))
        )

    async def _handle_add_folder_command(
        self, writer: asyncio.StreamWriter, command: AddFolderCommand
    ) -> None:
        """Handle AddFolder command.

        Args:
            writer: StreamWriter to send response through
            command: AddFolder command with the selected folder
        """
        logger.info(f"Handling AddFolder command: {command.path}")
        tracks = self.controller.add_folder(command.path)
        await self._send_response(
            writer, AddedResponse(count=len(tracks), tracks=_track_models(tracks))
        )

    async def _handle_file_info_command(
        self, writer: asyncio.StreamWriter, command: FileInfoCommand
    ) -> None:
        """Handle FileInfo command.

        Args:
            writer: StreamWriter to send response through
            command: FileInfo command with the path to describe
        """
        info = self.controller.file_info(command.path)
        await self._send_response(
            writer,
            FileInfoResponse(
                info=FileInfoModel(name=info.name, size=info.size, path=str(info.path))
            ),
        )

    async def _handle_transform_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Transform command.

        The job runs in the background; the ack only means it was accepted.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling Transform command")
        outcome = self.controller.submit_transform()

        if outcome == SubmitStatus.ACCEPTED:
            await self._send_response(writer, AckResponse())
        elif outcome == SubmitStatus.ALREADY_RUNNING:
            await self._send_error(writer, "A transformation is already running")
        else:
            await self._send_error(writer, "No track selected")

    async def _handle_status_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Status command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.debug("Handling Status command")
        await self._send_response(
            writer, StatusResponse(status=self.controller.snapshot())
        )

    async def _handle_shutdown_command(self, writer: asyncio.StreamWriter) -> None:
        """Handle Shutdown command.

        Args:
            writer: StreamWriter to send response through
        """
        logger.info("Handling Shutdown command")

        # Send acknowledgment
        await self._send_response(writer, AckResponse())

        # Signal shutdown
        self.shutdown_event.set()

    async def _handle_subscribe_command(self, writer: asyncio.StreamWriter) -> bool:
        """Handle Subscribe command.

        Args:
            writer: StreamWriter to subscribe

        Returns:
            True indicating the client is now subscribed
        """
        logger.info("Handling Subscribe command")
        self._subscribers.add(writer)

        # Send initial status immediately
        await self._send_response(
            writer, StateNotification(status=self.controller.snapshot())
        )

        return True

    async def _dispatch_command(
        self, writer: asyncio.StreamWriter, command: BaseModel
    ) -> bool:
        """Run one parsed command.

        Returns:
            True if connection should be kept alive, False to close it
        """
        controller = self.controller

        if isinstance(command, AddFileCommand):
            await self._handle_add_file_command(writer, command)
        elif isinstance(command, AddFolderCommand):
            await self._handle_add_folder_command(writer, command)
        elif isinstance(command, FileInfoCommand):
            await self._handle_file_info_command(writer, command)
        elif isinstance(command, ClearCommand):
            controller.clear_playlist()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, SelectCommand):
            controller.select(command.index)
            await self._send_response(writer, AckResponse())
        elif isinstance(command, PlayCommand):
            if controller.play():
                await self._send_response(writer, AckResponse())
            else:
                await self._send_error(writer, "Playlist is empty")
        elif isinstance(command, PauseCommand):
            controller.pause()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, StopCommand):
            controller.stop()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, NextCommand):
            controller.next_track()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, PreviousCommand):
            controller.previous_track()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, TrackEndedCommand):
            controller.track_ended()
            await self._send_response(writer, AckResponse())
        elif isinstance(command, VolumeCommand):
            controller.set_volume(command.level)
            await self._send_response(writer, AckResponse())
        elif isinstance(command, SeekCommand):
            controller.seek(command.position)
            await self._send_response(writer, AckResponse())
        elif isinstance(command, TransformCommand):
            await self._handle_transform_command(writer)
        elif isinstance(command, StatusCommand):
            await self._handle_status_command(writer)
        elif isinstance(command, SubscribeCommand):
            await self._handle_subscribe_command(writer)
        elif isinstance(command, ShutdownCommand):
            await self._handle_shutdown_command(writer)
            return False
        else:
            logger.error(f"Unhandled command type: {type(command)}")
            await self._send_error(writer, "Internal server error")

        return True

    async def _handle_command(self, writer: asyncio.StreamWriter, message: str) -> bool:
        """Parse and handle a command message.

        Args:
            writer: StreamWriter to send responses through
            message: Command message to parse and handle

        Returns:
            True if connection should be kept alive, False to close it
        """
        try:
            command = CommandWrapper.model_validate_json(message)
            logger.debug(f"Parsed command: {command.model_dump_json()}")
            return await self._dispatch_command(writer, command.root)

        except ValidationError as e:
            logger.error(f"Invalid command format: {e}")
            await self._send_error(writer, f"Invalid command format: {e}")
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON: {e}")
            await self._send_error(writer, f"Invalid JSON format: {e}")
            return True

        except (LibraryError, PlaylistError) as e:
            logger.warning(f"Command rejected: {e}")
            await self._send_error(writer, str(e))
            return True

        except Exception as e:
            logger.exception("Error handling command")
            await self._send_error(writer, f"Internal error: {e}")
            return True

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle a client connection.

        Args:
            reader: StreamReader for the client
            writer: StreamWriter for the client
        """
        peer = writer.get_extra_info("peername") or "Unknown"
        logger.info(f"Client connected: {peer}")

        # Create task and add to set
        task = asyncio.current_task()
        assert task is not None  # for type checking
        self._client_tasks.add(task)

        try:
            while True:
                try:
                    # Subscribers stay connected, plain clients get a read timeout
                    timeout = None if writer in self._subscribers else 5.0

                    # Read a line (command should end with newline)
                    data = await asyncio.wait_for(
                        reader.readuntil(MESSAGE_TERMINATOR), timeout=timeout
                    )

                    if not data:  # EOF
                        logger.info(f"Client disconnected (EOF): {peer}")
                        break

                    # Remove terminator and decode
                    message = data.rstrip(MESSAGE_TERMINATOR).decode("utf-8")
                    logger.debug(f"Received from {peer}: {message}")

                    # Handle the command
                    keep_alive = await self._handle_command(writer, message)
                    if not keep_alive:
                        break

                except asyncio.TimeoutError:
                    logger.warning(f"Timeout reading from client {peer}")
                    break
                except asyncio.IncompleteReadError:
                    logger.info(f"Client disconnected (incomplete read): {peer}")
                    break
                except asyncio.LimitOverrunError:
                    logger.warning(f"Message from {peer} exceeds {MAX_MESSAGE_SIZE} bytes")
                    break
                except ConnectionError as e:
                    logger.warning(f"Connection error with {peer}: {e}")
                    break
                except asyncio.CancelledError:
                    logger.info(f"Client connection cancelled: {peer}")
                    break
                except Exception as e:
                    logger.exception(f"Error handling client {peer}: {e}")
                    break

        finally:
            # Clean up
            logger.info(f"Closing connection with {peer}")
            self._subscribers.discard(writer)
            if not writer.is_closing():
                writer.close()
                try:
                    await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
                except Exception as e:
                    logger.warning(f"Error during connection cleanup: {e}")

            self._client_tasks.discard(task)
            logger.debug(f"Connection closed: {peer}")

    async def start(self) -> None:
        """Start the IPC server."""
        if self._server:
            logger.warning("Server already started")
            return

        # Clean up existing socket if needed
        if self.socket_path.exists():
            if self.socket_path.is_socket():
                logger.info(f"Removing existing socket file: {self.socket_path}")
                try:
                    self.socket_path.unlink()
                except OSError as e:
                    logger.error(f"Failed to remove existing socket: {e}")
                    raise
            else:
                logger.error(f"Path exists but is not a socket: {self.socket_path}")
                raise OSError(f"Path exists but is not a socket: {self.socket_path}")

        try:
            # Ensure parent directory exists
            self.socket_path.parent.mkdir(parents=True, exist_ok=True)

            # Start the server
            self._server = await asyncio.start_unix_server(
                self._handle_client,
                path=str(self.socket_path),
                limit=MAX_MESSAGE_SIZE,
            )

            logger.info(f"IPC server listening on {self.socket_path}")

        except Exception as e:
            logger.error(f"Failed to start IPC server: {e}")
            if self.socket_path.exists():
                self.socket_path.unlink(missing_ok=True)
            raise

    async def stop(self) -> None:
        """Stop the IPC server."""
        if not self._server:
            logger.warning("Server not running")
            return

        logger.info("Stopping IPC server...")

        # Explicitly close subscriber connections first to unblock their read loops
        if self._subscribers:
            logger.info(f"Closing {len(self._subscribers)} subscriber connections...")
            for writer in self._subscribers:
                if not writer.is_closing():
                    writer.close()
            self._subscribers.clear()

        # Close the server
        self._server.close()

        # Cancel any active client connections
        if self._client_tasks:
            logger.info(f"Cancelling {len(self._client_tasks)} client tasks...")
            tasks = list(self._client_tasks)
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._client_tasks.clear()

        await self._server.wait_closed()
        self._server = None

        # Clean up socket file
        logger.debug(f"Removing socket file: {self.socket_path}")
        try:
            self.socket_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing socket file: {e}")

        logger.info("IPC server stopped")
