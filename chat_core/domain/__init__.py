"""领域层模型与协议。

包含：
- models: 发给模型后端的 ChatMessage / ChatRequest 模型。
- session: 会话、会话消息与链接/文件详情模型。
- bot: 机器人人设（上下文提示词）与模型参数。
- exceptions: 业务异常类型定义。
"""
