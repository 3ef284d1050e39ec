"""基于 LangGraph 的轮次流水线。"""
