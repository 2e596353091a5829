"""eventhook - deliver host lifecycle events to HTTP webhooks"""
__version__ = "0.1.0"
