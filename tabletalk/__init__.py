"""
TableTalk - Guarded Natural-Language Querying for Tabular Data

Turns plain-English questions into a restricted SQL subset, screens the
question and the generated query, and executes the query in memory.
"""

__version__ = "1.0.0"
__author__ = "TableTalk Team"

from tabletalk.config import TableTalkConfig
from tabletalk.core.dataset import Dataset
from tabletalk.core.interpreter import SQLInterpreter

__all__ = ["TableTalkConfig", "Dataset", "SQLInterpreter", "__version__"]
