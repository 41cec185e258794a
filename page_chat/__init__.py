"""Page Chat 顶层包。

该包提供浏览器侧边栏助手的核心实现，
包括配置加载、领域模型、Provider 适配与路由、
页面内容提取、设置持久化（含旧数据迁移）以及对话会话编排。
"""

from page_chat.api.service import Services, build_services, browser_services

__all__ = ["Services", "build_services", "browser_services"]
