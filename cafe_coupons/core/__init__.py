"""
核心基础设施包初始化文件
"""
