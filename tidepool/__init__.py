"""Tide pool progress counter with a Telegram admin channel."""
