from ._version import version as __version__
from .context import Context
from .ttyml import main, run_session

__all__ = ["__version__", "Context", "main", "run_session"]
