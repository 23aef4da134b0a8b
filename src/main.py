import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from src.config import settings
from src.exceptions import register_exception_handlers
from src.logger_config import logger
from src.inventory import router as inventory_router
from src.reservations import router as reservations_router
from src.bookings import router as bookings_router

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Seat reservation, pricing and payment settlement for shows and live events",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # React dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Rendered ticket QR codes
os.makedirs(settings.STATIC_DIR, exist_ok=True)
app.mount(settings.STATIC_URL, StaticFiles(directory=settings.STATIC_DIR), name="static")

# Include routers
app.include_router(
    inventory_router.router,
    prefix=settings.API_V1_STR,
    tags=["Availability"]
)

app.include_router(
    reservations_router.router,
    prefix=settings.API_V1_STR,
    tags=["Seat Holds"]
)

app.include_router(
    bookings_router.router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Bookings & Payments"]
)

app.include_router(
    bookings_router.events_router,
    prefix=f"{settings.API_V1_STR}/events/bookings",
    tags=["Event Bookings"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

logger.info(f"{settings.PROJECT_NAME} started in {settings.ENVIRONMENT} mode")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
