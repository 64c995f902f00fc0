from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from count_engine.api.v1.api import api_router

# Create FastAPI app
app_config = {
    "title": "Inventory Count & Stock Reconciliation Engine",
    "description": "Inventory counts, batch count entry, stock reconciliation and SKU issuance",
    "version": "1.0.0",
}

app = FastAPI(**app_config)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def run_http():
    """Run HTTP server on port 9106"""
    import uvicorn
    from count_engine.core.logging_config import setup_logging

    setup_logging()
    uvicorn.run("count_engine.main:app", host="0.0.0.0", port=9106, reload=False)


if __name__ == "__main__":
    run_http()
