"""
Pharmacy POS Billing API - Main Application.

FastAPI application serving the billing screen of one POS terminal.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Create FastAPI application
app = FastAPI(
    title="Pharmacy POS Billing API",
    description="Cart, settlement and bill lifecycle for the pharmacy billing screen",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# TODO: Restrict origins once the console's deployment host is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "pos-billing-api"
    }


# Import and include routers
from api.routers import bills, cart, patients

app.include_router(cart.router, prefix="/api/v1", tags=["Cart"])
app.include_router(bills.router, prefix="/api/v1", tags=["Bills"])
app.include_router(patients.router, prefix="/api/v1", tags=["Patients"])
