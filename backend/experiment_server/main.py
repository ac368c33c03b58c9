"""
Experiment Server - Backend API
===============================
FastAPI application that collects field-experiment submissions and emails
hourly submission reports to the operators.

ARCHITECTURE:

    [Field App] --POST /results/{experiment}--> [This Backend]
                                                      |
                                            record_submission()
                                                      v
                                             [ReportAggregator] <-- tick every 0.5s
                                                      |
                                          (during report hours)
                                                      v
                                                 [SMTP server] --> operators

STARTUP CHECKS:
    1. The settings file must load (see config.py)
    2. A "Server started" email must go out
    If either fails the server refuses to start.

HOW TO RUN:
    # Install
    pip install -e .

    # Write a settings file (see config.py for the keys)
    cp app.example.cfg app.cfg

    # Run the server on the port from the settings file
    experiment-server --config-file app.cfg

    # Or with uvicorn directly (CONFIG_FILE picks the settings file)
    cd backend
    CONFIG_FILE=../app.cfg uvicorn experiment_server.main:app --port 8080
"""

import argparse
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from experiment_server.config import AppSettings, ConfigError, load_app_settings
from experiment_server.routers import reports_router, results_router
from experiment_server.services import EmailService, ReportAggregator, StartupError

logger = logging.getLogger(__name__)


# Load environment variables from .env file
load_dotenv()


# =============================================================================
# CONFIGURATION
# =============================================================================

class Config:
    """
    Process settings loaded from environment variables.

    Environment Variables:
        CONFIG_FILE: JSON settings file (default: app.cfg)
        FILES_DIR: Static files served at / (default: files)
        REPORT_TICK_INTERVAL: Seconds between report clock checks (default: 0.5)
        CORS_ORIGINS: Comma separated allowed origins (default: *)

    Port, report hours and SMTP details live in the settings file, not here.
    """

    CONFIG_FILE = os.getenv("CONFIG_FILE", "app.cfg")

    FILES_DIR = os.getenv("FILES_DIR", "files")

    REPORT_TICK_INTERVAL = float(os.getenv("REPORT_TICK_INTERVAL", "0.5"))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(
    settings: Optional[AppSettings] = None,
    email_service: Optional[EmailService] = None,
    start_clock: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Already-loaded settings. Loaded from Config.CONFIG_FILE
            at startup when omitted.
        email_service: Report transport. Built from the settings when omitted.
        start_clock: Schedule the periodic report tick.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        STARTUP:
            1. Load settings (fatal on error)
            2. Send the "server started" email (fatal on error)
            3. Start the ReportAggregator and hand it to the routers

        SHUTDOWN:
            1. Stop the tick job and the report loop
        """
        # ========== STARTUP ==========
        print("=" * 60)
        print("EXPERIMENT SERVER - Starting Backend")
        print("=" * 60)

        app_settings = settings if settings is not None else load_app_settings(Config.CONFIG_FILE)
        transport = email_service if email_service is not None else EmailService(app_settings)

        if not await asyncio.to_thread(transport.send_startup_notification):
            raise StartupError(
                "Fatal error occurred while trying to send the startup email, "
                "check the SMTP settings"
            )

        aggregator = ReportAggregator(
            transport=transport,
            report_hours=app_settings.report_hours,
            tick_interval=Config.REPORT_TICK_INTERVAL,
        )
        aggregator.start(with_clock=start_clock)

        app.state.settings = app_settings
        app.state.report_aggregator = aggregator

        print("Services initialized")
        print(f"   Report hours: {app_settings.report_hours or 'none'}")
        print(f"   Report recipients: {', '.join(app_settings.to)}")
        print(f"   SMTP server: {app_settings.smtp_host}:{app_settings.smtp_port}")
        print("=" * 60)

        yield  # Application runs here

        # ========== SHUTDOWN ==========
        print()
        print("Shutting down...")
        await aggregator.shutdown()
        app.state.report_aggregator = None
        print("Shutdown complete")

    app = FastAPI(
        title="Experiment Server API",
        description="Collects field-experiment submissions and emails hourly submission counts.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(results_router)
    app.include_router(reports_router)

    @app.get("/health", summary="Health Check")
    async def health(request: Request):
        """Health check endpoint."""
        app_settings = getattr(request.app.state, "settings", None)
        return {
            "status": "healthy",
            "report_hours": app_settings.report_hours if app_settings else [],
        }

    # Static files last so the API routes win
    if os.path.isdir(Config.FILES_DIR):
        app.mount("/", StaticFiles(directory=Config.FILES_DIR, html=True), name="files")
    else:
        logger.info(f"Static files directory '{Config.FILES_DIR}' not found, not serving files")

    return app


app = create_app()


# =============================================================================
# ENTRY POINT
# =============================================================================

def run(argv: Optional[list[str]] = None):
    """Load the settings file and serve on its port."""
    parser = argparse.ArgumentParser(description="Experiment data collection server")
    parser.add_argument("--config-file", default=Config.CONFIG_FILE,
                        help="The file to use for config")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    args = parser.parse_args(argv)

    try:
        settings = load_app_settings(args.config_file)
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)

    uvicorn.run(create_app(settings), host=args.host, port=settings.port)


if __name__ == "__main__":
    run()
