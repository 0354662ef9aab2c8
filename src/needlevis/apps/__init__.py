"""命令行入口（只做参数解析与 I/O）。"""
