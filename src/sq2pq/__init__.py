"""
sq2pq - SQLite to Parquet export pipeline.

Exports every table of a SQLite database into one Parquet artifact per table
and hands each finished artifact to a delivery sink (no-op or signed upload).
"""

__version__ = "0.3.0"
