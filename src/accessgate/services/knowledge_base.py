"""Knowledge base indexing using ChromaDB for vector storage and OpenAI for embeddings.

Approved access requests are offered here so their queries can later be
retrieved as context. Indexing is best-effort and never sits on the verdict
path.
"""

from typing import Any, Optional

import chromadb
import structlog
from openai import AsyncOpenAI

from accessgate.models.access_request import AccessRequest

logger = structlog.get_logger(__name__)


class KnowledgeBaseError(Exception):
    """Raised when a request cannot be indexed."""

    pass


class KnowledgeBaseService:
    """Service for upserting approved access requests into ChromaDB."""

    def __init__(
        self,
        openai_api_key: str,
        chromadb_host: str = "localhost",
        chromadb_port: int = 8000,
        collection_name: str = "access_requests",
        embedding_model: str = "text-embedding-3-small",
    ):
        """Initialize knowledge base service.

        Args:
            openai_api_key: OpenAI API key
            chromadb_host: ChromaDB server host
            chromadb_port: ChromaDB server port
            collection_name: ChromaDB collection name
            embedding_model: OpenAI embedding model to use
        """
        self.embedding_model = embedding_model
        self.collection_name = collection_name
        self.openai_client = AsyncOpenAI(api_key=openai_api_key)
        self.chroma_client = chromadb.HttpClient(
            host=chromadb_host,
            port=chromadb_port,
        )
        logger.info(
            "Initialized ChromaDB HTTP client",
            host=chromadb_host,
            port=chromadb_port,
        )

    def build_metadata(self, request: AccessRequest) -> dict[str, Any]:
        """Metadata stored alongside the query embedding.

        ChromaDB rejects None values, so absent fields are stored as "".
        """
        snapshot = request.requester_snapshot
        context = request.resource_context
        return {
            "query": request.query_text,
            "requester_id": request.requester_id,
            "department": snapshot.department if snapshot else "",
            "resource_type": context.resource_type or "",
            "resource_sensitivity": context.resource_sensitivity,
            "created_at": request.created_at.isoformat(),
        }

    async def index_access_request(self, request: AccessRequest) -> str:
        """Embed an approved access request's query and upsert it.

        Args:
            request: Persisted, approved access request

        Returns:
            Vector ID (access request ID as string)

        Raises:
            KnowledgeBaseError: If the request is unpersisted or the upsert fails
        """
        if request.id is None:
            raise KnowledgeBaseError("Access request must have an ID before indexing")

        request_id = str(request.id)

        try:
            response = await self.openai_client.embeddings.create(
                model=self.embedding_model,
                input=request.query_text,
            )
            embedding = response.data[0].embedding

            collection = self.chroma_client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
            collection.upsert(
                ids=[request_id],
                embeddings=[embedding],
                metadatas=[self.build_metadata(request)],
                documents=[request.query_text],
            )
        except Exception as e:
            logger.error(
                "Failed to index access request",
                access_request_id=request_id,
                error=str(e),
            )
            raise KnowledgeBaseError(f"Indexing failed: {e}") from e

        logger.info(
            "Indexed access request in knowledge base",
            access_request_id=request_id,
            collection=self.collection_name,
            embedding_dim=len(embedding),
        )
        return request_id


_knowledge_base_service: Optional[KnowledgeBaseService] = None


def get_knowledge_base_service() -> Optional[KnowledgeBaseService]:
    """Get the global knowledge base service, or None when disabled.

    Returns:
        KnowledgeBaseService singleton or None
    """
    global _knowledge_base_service
    from accessgate.config import settings

    if not settings.knowledge_base_enabled or not settings.openai_api_key:
        return None
    if _knowledge_base_service is None:
        _knowledge_base_service = KnowledgeBaseService(
            openai_api_key=settings.openai_api_key,
            chromadb_host=settings.chromadb_host,
            chromadb_port=settings.chromadb_port,
            collection_name=settings.chromadb_collection,
            embedding_model=settings.openai_embedding_model,
        )
    return _knowledge_base_service
