from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# Import routers
from .routers import assets, orders, consume

app = FastAPI(
    title="Datatoken Asset Market Backend",
    description="API for publishing, ordering and consuming datatoken-backed assets.",
    version="0.1.0"
)

# --- CORS Configuration ---
origins = [
    "http://localhost:3000", # Marketplace frontend
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(assets.router)
app.include_router(orders.router)
app.include_router(consume.router)


@app.get("/", tags=["Health Check"])
def read_root():
    """Root endpoint for health check."""
    return {"status": "ok", "message": "Welcome to the Datatoken Asset Market Backend!"}


# --- Server Startup (for local development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("datamarket.main:app", host="0.0.0.0", port=8000, reload=True)
