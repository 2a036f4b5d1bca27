"""Main FastAPI application entry point."""
from fastapi import FastAPI

from remediation_engine.database import init_db
from remediation_engine.logging_config import setup_logging
from remediation_engine.api.routes import router

setup_logging()

# Create database tables
init_db()

# Create FastAPI app
app = FastAPI(
    title="Remediation Engine",
    description="Bulk review, rollback and audit history for proposed data-quality fixes.",
    version="0.1.0"
)

# Include API routes
app.include_router(router, prefix="/api", tags=["Remediation"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Remediation Engine"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
