"""RAG core: chunking, embedding cache, query planning, search and formatting.

The engine lives in vectorrag.rag.engine (VectorRAG, build_rag).
"""
