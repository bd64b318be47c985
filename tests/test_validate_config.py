"""Tests for the config validation script."""

from scripts.validate_config import main

from helpers import channel_entry, write_config


class TestValidateConfig:
    def test_valid_config_passes(self, tmp_path, capsys):
        path = write_config(tmp_path / "config.json", trackedChannels=[channel_entry(name="Streamer")])

        assert main([str(path)]) == 0

        out = capsys.readouterr().out
        assert "Tracked channels:       1" in out
        assert "Configuration validation passed." in out

    def test_bad_platform_fails(self, tmp_path, capsys):
        path = write_config(
            tmp_path / "config.json",
            trackedChannels=[channel_entry(platform="Kick")],
        )

        assert main([str(path)]) == 1
        assert "[CONFIG ERROR] trackedChannels/0/platform" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.json")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        path.write_text("{", encoding="utf-8")

        assert main([str(path)]) == 1
        assert "invalid JSON" in capsys.readouterr().err
