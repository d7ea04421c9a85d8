"""Converter capability: glTF file in, GLB file out.

The geometry conversion itself lives outside this service. Anything with an
async ``convert(input_path, output_path, options)`` returning a truthy value
on success can stand in for it, which keeps the orchestrator testable with a
double.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from assetbridge.services.config import get_settings

logger = logging.getLogger(__name__)


class ConverterOptions(BaseModel):
    """Options handed to a converter for one invocation."""

    merge: bool = True
    working_dir: Path


@runtime_checkable
class Converter(Protocol):
    # True if the converter looks up auxiliary inputs (data/skeleton.glb)
    # relative to the process working directory.
    resolves_relative_to_cwd: bool

    async def convert(
        self,
        input_path: Path,
        output_path: Path,
        options: ConverterOptions,
    ) -> bool: ...


def _absolute_if_exists(arg: str) -> str:
    try:
        path = Path(arg)
        return str(path.resolve()) if path.exists() else arg
    except OSError:
        return arg


class SubprocessConverter:
    """Runs an external converter command as a child process.

    The command receives ``--file``, ``--output`` and ``--merge`` with
    absolute paths and runs inside ``options.working_dir``, so relative
    inputs resolve against the invocation's staging workspace and the
    service's own working directory is never touched.
    """

    resolves_relative_to_cwd = False

    def __init__(self, command: list[str]) -> None:
        if not command:
            raise ValueError("Converter command must not be empty")
        # Script arguments given relative to the launch directory must still
        # resolve once the child runs in a staging workspace.
        self.command = [command[0]] + [_absolute_if_exists(arg) for arg in command[1:]]

    async def convert(
        self,
        input_path: Path,
        output_path: Path,
        options: ConverterOptions,
    ) -> bool:
        args = [
            *self.command,
            "--file", str(input_path.resolve()),
            "--output", str(output_path.resolve()),
        ]
        if options.merge:
            args.append("--merge")

        logger.info("Running converter: %s", " ".join(args))
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(options.working_dir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            logger.error(
                "Converter exited with code %s: %s",
                proc.returncode,
                stderr.decode("utf-8", errors="replace")[:2000],
            )
            return False
        if stdout:
            logger.debug("Converter output: %s", stdout.decode("utf-8", errors="replace"))
        return output_path.exists()


@lru_cache(maxsize=1)
def get_converter() -> Converter:
    """Return the process-wide converter built from settings."""
    return SubprocessConverter(get_settings().converter_command)
