"""Channel -> playlist -> bucket tree engine (no I/O)"""

__version__ = "0.1.0"
