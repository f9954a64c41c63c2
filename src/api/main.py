from fastapi import FastAPI, HTTPException
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from ragchat.schemas import ChatRequest
from ragchat.chat import ChatService
from ragchat.config import settings
from ragchat.exceptions import ConfigurationError, RetrievalError
from ragchat.stream import MEDIA_TYPE, STREAM_HEADERS, data_stream
from pathlib import Path
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Grounded Chat", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

chat_service: ChatService | None = None

def get_chat_service() -> ChatService:
    """Build the service on first use; raises ConfigurationError while settings are incomplete"""
    global chat_service
    if chat_service is None:
        chat_service = ChatService(settings)
        logger.info(f"✅ Chat service initialized (provider={settings.llm_provider}, model={settings.model})")
    return chat_service

@app.on_event("startup")
def _startup():
    try:
        get_chat_service()
    except ConfigurationError as e:
        # keep serving so /health and the UI work; /api/chat reports the error
        logger.error(f"Configuration incomplete:\n{e}")

@app.get("/")
def read_root():
    static_dir = Path(__file__).parent / "static"
    return FileResponse(static_dir / "index.html")

@app.get("/health")
def health():
    return {
        "ok": True,
        "configured": settings.is_configured,
        "model": settings.model,
        "provider": settings.llm_provider,
    }

@app.post("/api/chat")
async def chat(req: ChatRequest):
    try:
        service = get_chat_service()
        # retrieval runs here so its failures still map to an HTTP status
        messages = await service.prepare_messages(req.messages)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except RetrievalError as e:
        logger.error(f"Retrieval failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return StreamingResponse(
        data_stream(service.generate(messages)),
        media_type=MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )

static_dir = Path(__file__).parent / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
