"""IPC command and response models for the phonebooth daemon."""

import json
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel


class AddFileCommand(BaseModel):
    """Command to import a single audio file."""

    command: Literal["add_file"] = "add_file"
    path: str


class AddFolderCommand(BaseModel):
    """Command to import every audio file below a folder."""

    command: Literal["add_folder"] = "add_folder"
    path: str


class FileInfoCommand(BaseModel):
    """Command to fetch display metadata of a file."""

    command: Literal["file_info"] = "file_info"
    path: str


class ClearCommand(BaseModel):
    """Command to empty the playlist."""

    command: Literal["clear"] = "clear"


class SelectCommand(BaseModel):
    """Command to select and play a playlist entry."""

    command: Literal["select"] = "select"
    index: int


class PlayCommand(BaseModel):
    command: Literal["play"] = "play"


class PauseCommand(BaseModel):
    command: Literal["pause"] = "pause"


class StopCommand(BaseModel):
    command: Literal["stop"] = "stop"


class NextCommand(BaseModel):
    command: Literal["next"] = "next"


class PreviousCommand(BaseModel):
    command: Literal["previous"] = "previous"


class TrackEndedCommand(BaseModel):
    """Sent by the front end when the current track plays to its end."""

    command: Literal["track_ended"] = "track_ended"


class VolumeCommand(BaseModel):
    """Command to set the volume in percent."""

    command: Literal["volume"] = "volume"
    level: int


class SeekCommand(BaseModel):
    """Command to move the playback position."""

    command: Literal["seek"] = "seek"
    position: float


class TransformCommand(BaseModel):
    """Command to run the transformer on the current track."""

    command: Literal["transform"] = "transform"


class StatusCommand(BaseModel):
    """Command to get the player status."""

    command: Literal["status"] = "status"


class SubscribeCommand(BaseModel):
    """Command to subscribe to state change events."""

    command: Literal["subscribe"] = "subscribe"


class ShutdownCommand(BaseModel):
    """Command to shut down the daemon."""

    command: Literal["shutdown"] = "shutdown"


# Use discriminated union for command parsing
DaemonCommand = Annotated[
    Union[
        AddFileCommand,
        AddFolderCommand,
        FileInfoCommand,
        ClearCommand,
        SelectCommand,
        PlayCommand,
        PauseCommand,
        StopCommand,
        NextCommand,
        PreviousCommand,
        TrackEndedCommand,
        VolumeCommand,
        SeekCommand,
        TransformCommand,
        StatusCommand,
        SubscribeCommand,
        ShutdownCommand,
    ],
    Field(discriminator="command"),
]


# Wrapper for easy command parsing using RootModel
class CommandWrapper(RootModel[DaemonCommand]):
    """Wrapper model for parsing incoming commands."""

    root: DaemonCommand


class TrackModel(BaseModel):
    """A playlist entry as seen by the front end."""

    name: str
    path: str
    size: int


class FileInfoModel(BaseModel):
    name: str
    size: int
    path: str


class PlayerStatusModel(BaseModel):
    """Snapshot of the player state."""

    tracks: List[TrackModel] = Field(default_factory=list)
    current_index: int = -1
    playback: str
    volume: int
    position: float = 0.0
    job_state: str
    last_error: Optional[str] = None
    message: str


class AckResponse(BaseModel):
    """Simple acknowledgment response."""

    response_type: Literal["ack"] = "ack"


class StatusResponse(BaseModel):
    """Response containing player status."""

    response_type: Literal["status"] = "status"
    status: PlayerStatusModel


class AddedResponse(BaseModel):
    """Response listing the tracks an import added."""

    response_type: Literal["added"] = "added"
    count: int
    tracks: List[TrackModel] = Field(default_factory=list)


class FileInfoResponse(BaseModel):
    response_type: Literal["file_info"] = "file_info"
    info: FileInfoModel


class ErrorResponse(BaseModel):
    """Response indicating an error."""

    response_type: Literal["error"] = "error"
    message: str


class StateNotification(BaseModel):
    """Notification broadcast when player state changes."""

    response_type: Literal["state_change"] = "state_change"
    status: PlayerStatusModel


# Use discriminated union for response serialization
DaemonResponse = Annotated[
    Union[
        AckResponse,
        StatusResponse,
        AddedResponse,
        FileInfoResponse,
        ErrorResponse,
        StateNotification,
    ],
    Field(discriminator="response_type"),
]


# Wrapper for easy response serialization using RootModel
class ResponseWrapper(RootModel[DaemonResponse]):
    """Wrapper model for serializing outgoing responses."""

    root: DaemonResponse

    def model_dump_json(self, **kwargs) -> str:
        """Override to unwrap the response for serialization."""
        return self.root.model_dump_json(**kwargs)

    @classmethod
    def model_validate_json(cls, json_data: str, **kwargs):
        """Override to wrap the parsed response data."""
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict) or not data.get("response_type"):
            raise ValueError("Missing response_type field")

        return cls.model_validate(data, **kwargs)
