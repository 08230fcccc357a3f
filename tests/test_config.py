"""Tests for Config."""

from pathlib import Path

from pbusage.config import Config


class TestConfig:
    def test_default_paths(self):
        """Default base_dir is ~/.pbusage with derived paths beneath it."""
        config = Config()
        assert config.base_dir == Path.home() / ".pbusage"
        assert config.log_dir == config.base_dir / "logs"
        assert config.output_path == config.base_dir / "entries.jsonl"

    def test_custom_base_dir(self, tmp_path):
        config = Config(base_dir=tmp_path / "custom")
        assert config.log_dir == tmp_path / "custom" / "logs"

    def test_ensure_dirs_creates_structure(self, tmp_path):
        config = Config(base_dir=tmp_path / "new-dir")
        assert not config.base_dir.exists()
        config.ensure_dirs()
        assert config.log_dir.is_dir()

    def test_analysis_defaults(self):
        config = Config()
        assert config.message_marker_method == "ProtoReflect"
        assert config.build_accessors == ("GetBuild",)
        assert config.reflection_packages == ("reflect",)
        assert config.skip_generated_files
        assert config.file_timeout_s is None
