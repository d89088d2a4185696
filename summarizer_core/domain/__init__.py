"""领域层模型与协议。

包含：
- models: ChatMessage / Job / LLMResponse / CacheEntry 等数据结构。
- conversation: 会话上下文模型及 ConversationContextStore 抽象。
- exceptions: 业务异常类型定义。
"""
