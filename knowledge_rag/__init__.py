"""
Knowledge RAG - question answering over an ingested knowledge base

Documents are chunked and embedded into a vector index; questions are
answered from retrieved chunks by a language model, with source citations
and a confidence score.
"""

__version__ = "1.0.0"
