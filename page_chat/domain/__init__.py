"""领域层模型与异常。

包含：
- models: ApiSetting / ChatMessage / PageContent 等共享数据结构。
- exceptions: 业务异常类型定义。
"""
