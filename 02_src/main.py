"""Main entry point for the task-status consumer."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from task_manager.api import create_fastapi_app
from task_manager.app import Application
from task_manager.config import load_settings
from task_manager.logging_config import setup_logging
from sim import Sim


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    settings = load_settings()
    setup_logging(log_level=settings.log_level, log_file=str(settings.log_file))

    api_url = f"http://{settings.api_host}:{settings.api_port}"

    # Create SIM instance
    sim = Sim(api_url=api_url)

    # Set SIM instance for control router
    from task_manager.api.routes import control
    control.set_sim_instance(sim)

    # Create FastAPI app
    app = create_fastapi_app(Application(settings))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
