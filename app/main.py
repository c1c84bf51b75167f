# app/main.py
from fastapi import FastAPI, WebSocket, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
import logging

from app.api.v1.router import api_router
from app.database import engine, Base, get_db
from app.config import get_settings
from app.services.errors import ChatError
from app.websockets.connection_manager import handle_realtime_connection
# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create tables in the database
Base.metadata.create_all(bind=engine)

# Get settings
settings = get_settings()

# Initialize app
app = FastAPI(
    title="Property Chat API",
    description="Buyer/advertiser chat for the property marketplace: conversations, message history and realtime channels",
    version="0.1.0"
)

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """Health check and welcome message"""
    return {
        "message": "Welcome to the Property Chat API",
        "status": "online",
        "version": "0.1.0"
    }


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


# Error handler for global exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception on {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


@app.websocket("/ws/realtime")
async def realtime_websocket_endpoint(
    websocket: WebSocket,
    access_token: str,
    db: Session = Depends(get_db)
):
    """
    WebSocket endpoint for realtime chat channels
    
    Args:
        websocket: WebSocket connection
        access_token: JWT authentication token
    """
    await handle_realtime_connection(
        websocket=websocket,
        access_token=access_token,
        db=db
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
