from .git import GitVersioning, Versioning

__all__ = ["GitVersioning", "Versioning"]
