"""Adapters binding the core pipeline to Telegram and the HTTP services."""
