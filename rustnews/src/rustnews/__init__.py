"""
rustnews - aggregates Rust community feeds into one de-duplicated timeline.
"""

__version__ = "0.1.0"
