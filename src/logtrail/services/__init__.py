"""
Service Adapters

I/O layer components that wrap external systems:
- SQLite database (log files, jobs, events, summaries)
- Local file storage (uploaded log bytes)
- Event queries

These adapters provide clean interfaces and isolate external dependencies.
"""

__all__ = ['database', 'stores', 'file_source', 'query_service']
