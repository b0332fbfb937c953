"""Core domain package for tokenscope.

Core contains the dedup, caching, and alert dispatch logic without any HTTP,
Telegram, or storage-specific code, keeping the business logic portable.
"""
