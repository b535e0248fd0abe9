from fastapi import FastAPI
import logging
from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title="Diagram Layout Engine API",
              description="API for overlap-free diagram layout generation",
              version="1.0.0")

# Configure logging to show info-level logs from routers and the layout engine
logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"message": "Welcome to the Diagram Layout Engine API"}


@app.get("/health")
async def health():
    """Health endpoint for local checks.

    Returns a small JSON with service status and available layout endpoints.
    """
    return {
        "status": "ok",
        "service": "diagram-layout-engine",
        "version": "1.0.0",
        "routes": [
            "/api/layout/generate"
        ]
    }

# Import routers
from .routers import layout
app.include_router(layout.router, prefix="/api/layout", tags=["layout"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.app.main:app", host="0.0.0.0", port=8000, reload=True)
