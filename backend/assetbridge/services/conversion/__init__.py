"""Stage 3: glTF → GLB conversion and MML descriptor publishing."""

from .converter import Converter, ConverterOptions, SubprocessConverter, get_converter
from .orchestrator import (
    CONVERSION_FAILED,
    ConversionOrchestrator,
    build_descriptor,
    convert_to_mml,
    get_orchestrator,
)
from .staging import StagingWorkspace, staging_workspace, working_directory

__all__ = [
    "CONVERSION_FAILED",
    "ConversionOrchestrator",
    "Converter",
    "ConverterOptions",
    "StagingWorkspace",
    "SubprocessConverter",
    "build_descriptor",
    "convert_to_mml",
    "get_converter",
    "get_orchestrator",
    "staging_workspace",
    "working_directory",
]
