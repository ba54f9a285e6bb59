"""Dispatch of a single transformation job to the external transformer."""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from .config import TransformerConfig

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_SUFFIX = "_telephone"


class TransformErrorKind(str, Enum):
    """Ways a transformation job can fail."""

    SPAWN_FAILURE = "spawn_failure"
    TRANSFORMER_FAILURE = "transformer_failure"
    TIMEOUT = "timeout"
    OUTPUT_MISSING = "output_missing"


@dataclass(frozen=True)
class TransformResult:
    """Successful outcome of a transformation job."""

    output_path: Path
    success: bool = True


@dataclass(frozen=True)
class TransformError:
    """Failed outcome of a transformation job."""

    kind: TransformErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


def derive_output_path(
    input_path: Union[str, os.PathLike], suffix: str = DEFAULT_OUTPUT_SUFFIX
) -> Path:
    """Predict where the transformer writes its output.

    The output sits next to the input as ``<stem><suffix><ext>``. Applying
    this to an already derived path appends the suffix again.
    """
    path = Path(input_path)
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


async def _kill_process(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        return  # Process already finished
    await process.wait()


async def dispatch(
    input_path: Union[str, os.PathLike], config: Optional[TransformerConfig] = None
) -> Tuple[Optional[TransformResult], Optional[TransformError]]:
    """Run the external transformer on one input file.

    The transformer is started as ``<command...> <input_path> <output_path>``.
    Its stderr is collected in full and used as the failure message; stdout
    is discarded. Nothing is raised for transformer problems, every outcome
    comes back as a value.

    Args:
        input_path: File to transform.
        config: Transformer settings; defaults apply when omitted.

    Returns:
        Tuple of (result, error) where exactly one is not None.
    """
    if config is None:
        config = TransformerConfig()

    output_path = derive_output_path(input_path, config.suffix)
    command = [*config.command, str(input_path), str(output_path)]
    logger.info(f"Starting transformer: {' '.join(command)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        # FileNotFoundError, PermissionError and friends
        message = e.strerror or str(e)
        if e.filename:
            message = f"{message}: {e.filename}"
        logger.error(f"Could not start transformer: {message}")
        return None, TransformError(TransformErrorKind.SPAWN_FAILURE, message)

    logger.debug(f"Transformer running with PID: {process.pid}")

    try:
        _, stderr = await asyncio.wait_for(
            process.communicate(), timeout=config.timeout_s
        )
    except asyncio.TimeoutError:
        logger.error(f"Transformer timed out after {config.timeout_s}s, killing it")
        await _kill_process(process)
        return None, TransformError(
            TransformErrorKind.TIMEOUT,
            f"Transformer timed out after {config.timeout_s}s",
        )
    except asyncio.CancelledError:
        logger.warning("Transformation cancelled, killing transformer")
        await _kill_process(process)
        raise

    error_output = (stderr or b"").decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        message = error_output or f"Transformer exited with code {process.returncode}"
        logger.error(f"Transformer failed with code {process.returncode}: {message}")
        return None, TransformError(TransformErrorKind.TRANSFORMER_FAILURE, message)

    if error_output:
        logger.debug(f"Transformer stderr: {error_output}")

    if config.verify_output and not output_path.is_file():
        message = f"Transformer exited successfully but produced no file at {output_path}"
        logger.error(message)
        return None, TransformError(TransformErrorKind.OUTPUT_MISSING, message)

    logger.info(f"Transformer finished: {output_path}")
    return TransformResult(output_path=output_path), None
