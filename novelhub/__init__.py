"""novelhub - engagement service for a novel publishing platform.

Threaded comments, activity counters and notification fan-out for
novels, episodes and chapters.
"""

__version__ = "0.1.0"
