"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在调用方做统一捕获与用户提示。

- InputExtractionError: 构造用户消息失败（不支持的文件、抓取/解析失败），
  会被转换为一条可见的错误回复，不会调用模型。
- BackendError: 模型调用失败（含用户主动中止），写入占位回复的正文。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "UNSUPPORTED_FILE_TYPE"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 url、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class InputExtractionError(BusinessError):
    """用户输入无法转换成消息。"""


class UnsupportedFileTypeError(InputExtractionError):
    """上传文件的扩展名没有对应的抽取器。"""


class UrlFetchError(InputExtractionError):
    """抓取链接内容失败（网络错误或非 2xx 响应）。"""


class FileParseError(InputExtractionError):
    """文件内容解析失败或没有可抽取的文本。"""


class BackendError(BusinessError):
    """模型后端调用失败。"""


class NetworkError(BackendError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BackendError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BackendError):
    """Provider 限流错误，由上层负责重试/退避策略。"""


class AbortedError(BackendError):
    """请求被用户主动中止，错误信息中包含 "aborted"。"""

    def __init__(self, message: str = "The user aborted a request.", **extra):
        super().__init__(code="ABORTED", message=message, **extra)
