"""
skycast - camera snapshots to an LLM weather report, delivered over Telegram
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skycast")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
__logo__ = "🌦"
