"""ロギング設定と進捗ログのテスト。"""

import logging
from pathlib import Path
from tempfile import TemporaryDirectory

from unsafe_audit.utils.logger import AuditProgress, setup_logging


class TestSetupLogging:
    """setup_loggingのテスト。"""

    def test_file_handler(self):
        """ログファイルを指定した場合はファイルにも出力する。"""
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        try:
            with TemporaryDirectory() as tmpdir:
                log_file = Path(tmpdir) / "logs" / "audit.log"
                setup_logging(level="info", log_file=str(log_file))
                logging.getLogger("unsafe_audit.test").info("written")

                for handler in root.handlers:
                    handler.close()
                assert root.level == logging.INFO
                assert "written" in log_file.read_text(encoding="utf-8")
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_unknown_level_falls_back_to_warning(self):
        """不明なレベル名はWARNINGになる。"""
        root = logging.getLogger()
        saved_handlers = list(root.handlers)
        saved_level = root.level
        try:
            setup_logging(level="LOUD")
            assert root.level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestAuditProgress:
    """AuditProgressのテスト。"""

    def test_interval_and_summary(self, caplog):
        """一定件数ごとの途中経過と最後の集計を出力する。"""
        logger = logging.getLogger("unsafe_audit.progress")
        progress = AuditProgress(5, logger, every=2)

        with caplog.at_level(logging.INFO, logger="unsafe_audit.progress"):
            for index in range(5):
                progress.advance(f"f{index}.rs", ok=index != 3)
            progress.finish()

        messages = [record.getMessage() for record in caplog.records]
        assert messages == [
            "Audited 2 of 5 files",
            "Audited 4 of 5 files",
            "Audited 5 files (1 failed)",
        ]

    def test_each_file_at_debug(self, caplog):
        """各ファイルの完了はdebugで出力する。"""
        logger = logging.getLogger("unsafe_audit.progress")
        progress = AuditProgress(2, logger)

        with caplog.at_level(logging.DEBUG, logger="unsafe_audit.progress"):
            progress.advance("a.rs")
            progress.advance("b.rs")

        debug_messages = [
            record.getMessage() for record in caplog.records
            if record.levelno == logging.DEBUG
        ]
        assert debug_messages == ["[1/2] a.rs", "[2/2] b.rs"]
