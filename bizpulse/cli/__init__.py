"""
BizPulse CLI - terminal client for the realtime notification channel.

Usage:
    bizpulse login <token> --user-type manager --user-id u1
    bizpulse listen
    bizpulse config
    bizpulse push-preview '{"title": "Hi", "message": "..."}'
    bizpulse logout
"""

__version__ = "0.1.0"
__cli_name__ = "bizpulse"
