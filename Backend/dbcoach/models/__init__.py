from .design import GeneratedDesign

__all__ = ["GeneratedDesign"]
