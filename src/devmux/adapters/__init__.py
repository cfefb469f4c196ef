"""外部服务适配器

- tmux: subprocess 驱动的 tmux 客户端
"""
