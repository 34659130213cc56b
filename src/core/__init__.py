"""Core domain package for jobscope.

Core contains extraction, category resolution, deduplication and run
coordination logic without any Telegram, OpenAI or storage-specific code,
keeping the business logic portable.
"""
