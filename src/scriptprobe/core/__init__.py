"""Core domain: models, ports and the two probe pipelines."""
