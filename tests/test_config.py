"""設定管理のテスト。"""

from pathlib import Path
from tempfile import TemporaryDirectory

import yaml

from unsafe_audit.config import Config


class TestConfigDefaults:
    """Configの既定値のテスト。"""

    def test_default_values(self):
        """デフォルト値のテスト。"""
        config = Config()
        assert config.nonffi is False
        assert config.ffi is False
        assert config.jobs == 1
        assert config.strict_parse is True
        assert config.file_encoding == "utf-8"
        assert config.excel_output is None
        assert config.json_output is None
        assert config.log_level == "WARNING"
        assert config.validate() == []


class TestConfigLoading:
    """設定の読み込みテスト。"""

    def test_from_yaml(self, monkeypatch):
        """YAMLファイルからの読み込み。"""
        monkeypatch.delenv("UNSAFE_AUDIT_LOG_LEVEL", raising=False)
        monkeypatch.delenv("UNSAFE_AUDIT_JOBS", raising=False)

        with TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "config.yaml"
            config_file.write_text(
                "nonffi: true\n"
                "jobs: 4\n"
                "strict_parse: false\n"
                "log_level: INFO\n",
                encoding="utf-8"
            )

            config = Config.from_yaml(str(config_file))

        assert config.nonffi is True
        assert config.ffi is False
        assert config.jobs == 4
        assert config.strict_parse is False
        assert config.log_level == "INFO"

    def test_empty_yaml(self, monkeypatch):
        """空のYAMLファイルは既定値になる。"""
        monkeypatch.delenv("UNSAFE_AUDIT_JOBS", raising=False)

        with TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "empty.yaml"
            config_file.write_text("", encoding="utf-8")

            config = Config.from_yaml(str(config_file))

        assert config.jobs == 1

    def test_unknown_keys_ignored(self):
        """未知のキーは無視する。"""
        config = Config.from_dict({"ffi": True, "model": "gpt-4"})

        assert config.ffi is True
        assert not hasattr(config, "model")

    def test_environment_overrides(self, monkeypatch):
        """環境変数による上書き。"""
        monkeypatch.setenv("UNSAFE_AUDIT_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("UNSAFE_AUDIT_JOBS", "3")

        config = Config.load()

        assert config.log_level == "DEBUG"
        assert config.jobs == 3

    def test_invalid_jobs_environment_ignored(self, monkeypatch):
        """不正なジョブ数の環境変数は無視する。"""
        monkeypatch.setenv("UNSAFE_AUDIT_JOBS", "many")

        config = Config.load()

        assert config.jobs == 1

    def test_save_and_reload(self, monkeypatch):
        """保存した設定を再度読み込める。"""
        monkeypatch.delenv("UNSAFE_AUDIT_LOG_LEVEL", raising=False)
        monkeypatch.delenv("UNSAFE_AUDIT_JOBS", raising=False)

        with TemporaryDirectory() as tmpdir:
            config_file = Path(tmpdir) / "nested" / "config.yaml"
            original = Config(ffi=True, jobs=2, json_output="out/report.json")
            original.save_yaml(str(config_file))

            with open(config_file, encoding="utf-8") as f:
                data = yaml.safe_load(f)
            loaded = Config.from_yaml(str(config_file))

        assert "excel_output" not in data
        assert loaded.to_dict() == original.to_dict()


class TestConfigValidation:
    """設定の検証テスト。"""

    def test_invalid_jobs(self):
        """ジョブ数が0以下の場合はエラー。"""
        errors = Config(jobs=0).validate()
        assert len(errors) == 1
        assert "jobs" in errors[0]

    def test_unknown_log_level(self):
        """未知のログレベルはエラー。"""
        errors = Config(log_level="VERBOSE").validate()
        assert len(errors) == 1
        assert "log level" in errors[0]

    def test_lowercase_log_level(self):
        """ログレベルは大文字小文字を区別しない。"""
        assert Config(log_level="info").validate() == []

    def test_output_in_new_directory(self):
        """存在しない出力ディレクトリは親が書き込み可能なら有効。"""
        with TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "reports" / "audit.xlsx"
            assert Config(excel_output=str(output)).validate() == []
