"""
Ingestion Core

Line parser, content hasher, aggregator, event batcher, job state machine
and the pipeline that drives them over one log file.
"""

__all__ = ['parser', 'hasher', 'aggregator', 'batcher', 'jobs', 'pipeline']
