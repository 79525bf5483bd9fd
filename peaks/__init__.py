"""PEAKS project builder.

Turns a free-form chat message into a generated project file tree, keeps the
tree persisted per project, merges later AI output into it, and renders it as
a downloadable archive or a self-contained HTML preview.
"""

__version__ = "0.1.0"
