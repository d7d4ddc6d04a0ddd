"""
进度与日志事件接口

流水线核心只通过 ProgressReporter 向外发送事件，不依赖任何具体的展示方式。
- ProgressReporter:     默认实现，把日志事件转发给 loguru。
- TqdmProgressReporter: 命令行使用，额外驱动一个 tqdm 进度条。
"""
from tqdm.asyncio import tqdm

from utils.logger import logger

SEVERITY_LEVELS = {
    "info": "INFO",
    "success": "SUCCESS",
    "warning": "WARNING",
    "error": "ERROR",
}


class ProgressReporter:
    """
    事件观察者。子类按需覆盖。
    """

    def on_progress(self, completed: int, total: int, status: str):
        """completed 为已结算 (成功 + 失败) 的条目数。"""
        pass

    def on_log(self, message: str, severity: str = "info"):
        logger.opt(depth=1).log(SEVERITY_LEVELS.get(severity, "INFO"), message)

    def on_result(self, item):
        """一条结果写入结果集合后触发。"""
        pass

    def close(self):
        pass


class TqdmProgressReporter(ProgressReporter):
    """
    命令行进度条。
    """

    def __init__(self, unit: str = "item"):
        self.unit = unit
        self.pbar: tqdm | None = None

    def on_progress(self, completed: int, total: int, status: str):
        if self.pbar is None or self.pbar.total != total:
            if self.pbar is not None:
                self.pbar.close()
            self.pbar = tqdm(total=total, desc="Generating", unit=self.unit)
        self.pbar.n = completed
        self.pbar.set_postfix_str(status)
        self.pbar.refresh()

    def on_log(self, message: str, severity: str = "info"):
        # 进度条存在时，逐条的 info 日志只写入文件，避免冲掉进度条
        if self.pbar is not None and severity == "info":
            logger.debug(message)
            return
        super().on_log(message, severity)

    def close(self):
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None
