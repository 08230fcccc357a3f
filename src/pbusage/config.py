"""Configuration management for pbusage."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    """Central configuration with path properties and analysis knobs."""

    base_dir: Path = field(default_factory=lambda: Path.home() / ".pbusage")

    # Generated type detection
    message_marker_method: str = "ProtoReflect"
    message_marker_field: str = "state"
    message_marker_field_type: str = "google.golang.org/protobuf/runtime/protoimpl.MessageState"

    # Method and constructor surface
    build_accessors: tuple[str, ...] = ("GetBuild",)
    builder_suffix: str = "_builder"
    builder_method: str = "Build"

    # Reflection tracing
    reflection_packages: tuple[str, ...] = ("reflect",)
    max_reflect_depth: int = 64

    # Run policy
    skip_generated_files: bool = True
    workers: int = 4
    file_timeout_s: float | None = None

    @property
    def log_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def output_path(self) -> Path:
        return self.base_dir / "entries.jsonl"

    def ensure_dirs(self) -> None:
        """Create directory tree if it doesn't exist."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
