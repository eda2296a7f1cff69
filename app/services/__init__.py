"""
Services package - business logic over the repositories
"""
