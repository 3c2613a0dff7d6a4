"""Core domain package for cat-raising.

Core contains the extractors, admission rules and forwarding ledger without
any Telegram or HTTP-specific code, keeping the business logic portable.
"""
