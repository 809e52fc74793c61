"""
logtrail

Access-log ingestion: streaming parse, content digest, aggregate statistics,
background analysis jobs and paginated event queries.
"""

__version__ = "0.1.0"
