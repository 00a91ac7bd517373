"""Single-shot generators that call the configured system model."""

from .instruction_generator import InstructionGenerator
from .title_generator import TitleGenerator, simple_title
from .tool_generator import ToolGenerationError, ToolGenerator

__all__ = [
    "InstructionGenerator",
    "TitleGenerator",
    "ToolGenerationError",
    "ToolGenerator",
    "simple_title",
]
