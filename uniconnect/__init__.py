"""UniConnect: project collaboration backend for university students"""

__version__ = "1.0.0"
