import collections
import logging
import logging.handlers
from pathlib import Path
from typing import List, Optional

from danmu_merge.core.config import settings

# 这个双端队列将用于在内存中存储最新的日志，以供宿主服务展示
_logs_deque = collections.deque(maxlen=200)


# 自定义一个日志处理器，它会将日志记录发送到我们的双端队列中
class DequeHandler(logging.Handler):
    def __init__(self, deque):
        super().__init__()
        self.deque = deque

    def emit(self, record):
        # 我们只存储格式化后的消息字符串，最新的在最前
        self.deque.appendleft(self.format(record))


class MappingDetailFilter(logging.Filter):
    """从内存日志中排除逐集映射详情，这类多行日志只写入控制台和文件"""
    def filter(self, record):
        return "映射详情" not in record.getMessage()


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    配置根日志记录器，使其能够将日志输出到控制台、一个可轮转的文件（可选），
    以及一个内存双端队列。
    此函数应在宿主启动时被调用一次；参数缺省时读取配置中的 log 段。
    """
    level_name = (level or settings.log.level or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_file = log_file if log_file is not None else settings.log.file_path

    formatter = logging.Formatter(
        '%(asctime)s [%(name)s] [%(levelname)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # 清理已存在的处理器，以避免重复调用时重复添加
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.addHandler(logging.StreamHandler())  # 控制台处理器

    if log_file:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            logger.addHandler(logging.handlers.RotatingFileHandler(
                log_path, maxBytes=5*1024*1024, backupCount=5, encoding='utf-8'
            ))
        except OSError as e:
            logger.warning(f"无法创建日志文件 {log_path}: {e}，仅输出到控制台")

    deque_handler = DequeHandler(_logs_deque)
    deque_handler.addFilter(MappingDetailFilter())
    logger.addHandler(deque_handler)

    # 为所有处理器设置格式
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    logging.info(f"日志系统已初始化 (级别: {level_name}, 文件: {log_file or '无'})")
    return logger


def get_logs() -> List[str]:
    """返回内存中存储的所有日志条目列表（最新的在最前）。"""
    return list(_logs_deque)


def clear_logs() -> None:
    _logs_deque.clear()
