import logging

import pytest

from danmu_merge.services import log_manager


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    log_manager.clear_logs()
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    log_manager.clear_logs()


def test_logs_are_kept_newest_first(root_logger):
    log_manager.setup_logging(level="INFO", log_file="")
    logger = logging.getLogger("MergeService")
    logger.info("第一条")
    logger.info("第二条")
    logger.debug("不会出现")

    logs = log_manager.get_logs()
    assert "第二条" in logs[0]
    assert "第一条" in logs[1]
    assert "[MergeService] [INFO]" in logs[0]
    assert not any("不会出现" in line for line in logs)


def test_mapping_details_stay_out_of_memory_log(root_logger):
    log_manager.setup_logging(level="INFO", log_file="")
    logging.getLogger("MergeService").info("[Merge] [bilibili] 映射详情:\n   [匹配] 1 <-> 1")

    assert not any("映射详情" in line for line in log_manager.get_logs())


def test_rotating_file_handler(root_logger, tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    log_manager.setup_logging(level="INFO", log_file=str(log_file))
    logging.getLogger("MergeService").info("写入文件")

    for handler in root_logger.handlers:
        handler.flush()
    assert "写入文件" in log_file.read_text(encoding="utf-8")
