"""
静态配置包初始化文件
"""
