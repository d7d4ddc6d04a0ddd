"""
远程调用与流水线的错误分类

- AuthError:       缺少或无效的凭证。在运行开始前出现时终止整个运行。
- RemoteError:     任意远程能力调用失败。只影响当前条目。
- PlanError:       提示词规划失败或解析失败。终止整个运行。
- CaptionError:    视觉打标失败。总是在本地用兜底文本恢复，不会向外抛出。
- InvalidRunError: 运行参数不合法，在发出任何远程调用之前拒绝。
"""


class DatasetError(Exception):
    """本项目所有错误的基类。"""


class AuthError(DatasetError):
    """缺少 fal API Key。"""


class RemoteError(DatasetError):
    """远程能力调用失败，message 为服务端给出的最详细的诊断信息。"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PlanError(DatasetError):
    """LLM 提示词规划失败。"""


class CaptionError(DatasetError):
    """视觉打标失败。"""


class InvalidRunError(DatasetError, ValueError):
    """运行参数校验失败。"""
