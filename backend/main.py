"""
API layer - FastAPI application for grounded question answering.
Following SOLID:
- Single Responsibility - Controllers are thin, delegate to AnswerService.
- Dependency Inversion - Controllers depend on service abstractions.

Failures before the first byte become status-coded JSON errors. Once a
stream has started, failures are reported in-band by the StreamTransport.
"""
import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from domain.models import AskRequest, AskResponse, ChatRequest, ErrorResponse
from rag.config import RAGConfig
from rag.embeddings import OpenAIEmbeddingService
from rag.errors import AssistantError, RetrievalUnavailableError
from rag.generation import ChatOpenAIGenerationClient
from rag.models import SupplementaryDocument
from rag.retrieval_service import RetrievalService
from rag.streaming import SSE_HEADERS
from rag.vector_store import ChromaVectorStore
from services.answer_service import AnswerService

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global service instance
answer_service: Optional[AnswerService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - initialize services on startup."""
    global answer_service

    logger.info("Initializing application...")

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        logger.error("OPENAI_API_KEY environment variable not set!")
        raise RuntimeError("OPENAI_API_KEY must be set")

    rag_config = RAGConfig.from_env()

    embedding_service = OpenAIEmbeddingService(rag_config.embedding)
    vector_store = ChromaVectorStore(rag_config.vector_store)
    retrieval_service = RetrievalService(
        vector_store=vector_store,
        embedding_service=embedding_service,
        config=rag_config.retrieval
    )
    generation_client = ChatOpenAIGenerationClient(rag_config.generation, api_key=openai_api_key)

    answer_service = AnswerService(
        retrieval_service=retrieval_service,
        generation_client=generation_client,
        service_config=rag_config.service,
        generation_config=rag_config.generation
    )

    logger.info("Application initialized successfully")

    yield

    logger.info("Application shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Knowledge Assistant",
    description="Grounded answers over ORS 90, policy documents, and training transcripts",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173", "http://frontend:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AssistantError)
async def assistant_error_handler(request: Request, exc: AssistantError):
    logger.warning(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Invalid request: {field or 'body'}: {errors[0].get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=ErrorResponse(error="An unexpected error occurred").model_dump())


def get_answer_service() -> AnswerService:
    """Dependency returning the configured AnswerService."""
    if answer_service is None:
        raise RetrievalUnavailableError("Knowledge services not available")
    return answer_service


def get_caller(x_user_email: Optional[str] = Header(default=None)) -> str:
    """Caller identity forwarded by the auth layer; used for audit logs only."""
    return x_user_email or "anonymous"


async def _respond(
    service: AnswerService,
    query: str,
    streaming: bool,
    document: Optional[SupplementaryDocument],
    caller: str
):
    if streaming:
        transport = await service.open_stream(query, document, caller=caller)
        return StreamingResponse(
            transport.events(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    answer = await service.ask(query, document, caller=caller)
    return AskResponse(answer=answer.answer, sources=answer.sources)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Knowledge Assistant API is running"}


@app.post("/api/ask")
async def ask(
    request: AskRequest,
    service: AnswerService = Depends(get_answer_service),
    caller: str = Depends(get_caller)
):
    """
    Answer a question from the knowledge base.

    mode=sync returns {answer, sources}; mode=streaming returns an SSE stream
    of sources, text fragments, and a terminal done or error event.
    """
    document = request.to_document()
    return await _respond(service, request.query, request.mode == "streaming", document, caller)


@app.post("/api/chat", response_model=AskResponse)
async def chat(
    request: ChatRequest,
    service: AnswerService = Depends(get_answer_service),
    caller: str = Depends(get_caller)
):
    """Legacy synchronous chat endpoint."""
    return await _respond(service, request.message, False, request.to_document(), caller)


@app.post("/api/chat/stream")
async def chat_stream(
    request: ChatRequest,
    service: AnswerService = Depends(get_answer_service),
    caller: str = Depends(get_caller)
):
    """Legacy streaming chat endpoint with optional document analysis."""
    return await _respond(service, request.message, True, request.to_document(), caller)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
