"""
接口包初始化文件
"""
