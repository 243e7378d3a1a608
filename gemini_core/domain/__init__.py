"""领域层模型与协议。

包含：
- models: Part / Message / PageImage / RequestEnvelope 等请求内容模型。
- conversation: 会话记录 Conversation 及 ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
