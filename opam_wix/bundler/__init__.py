"""Bundle resolution and staging."""

from .classifier import EmbedClassifier
from .identifiers import derive, derive_all
from .resolver import expand, resolve
from .stager import StagedBundle, Stager

__all__ = [
    "EmbedClassifier",
    "StagedBundle",
    "Stager",
    "derive",
    "derive_all",
    "expand",
    "resolve",
]
