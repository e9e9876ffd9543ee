"""CLI tools for the contextual document pipeline.

- ``python -m src.cli.process <file>`` -- run the pipeline on a local text,
  image, PDF or EPUB file and print a report or the JSON export.
"""
