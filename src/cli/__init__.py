"""CLI tools for the project knowledge base.

- ``python -m src.cli ingest`` -- ingest a PDF into a project
- ``python -m src.cli ask`` -- stream a grounded answer with citations
- ``python -m src.cli stats`` -- project chunk and document counts

Commands build their providers through ``src.main.build_services`` so they
share the server's configuration.
"""
