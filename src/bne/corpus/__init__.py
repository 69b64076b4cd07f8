"""Read-only corpus access."""
from .json_corpus import CollectionInfo, Corpus, CorpusUnit, JsonCorpus

__all__ = ["CollectionInfo", "Corpus", "CorpusUnit", "JsonCorpus"]
