"""
tapback - A messaging bridge between chat threads and a language model
"""

import warnings
from importlib.metadata import PackageNotFoundError, version

# litellm warns on every call when a model is missing from its pricing table.
warnings.filterwarnings(
    "ignore",
    message="Cost calculation failed.*",
    category=UserWarning,
)

try:
    __version__ = version("tapback-bridge")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
__logo__ = "💬"
