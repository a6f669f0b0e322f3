"""
Bridgewatch
===========

Border-crossing traffic assistant for the Maseru Bridge.

A public camera rotates between views of the crossing. This package
captures stills on a schedule, classifies each by camera angle, keeps a
bounded history plus the freshest frame per useful angle, and answers
traffic questions by combining deterministic vehicle counts with a
vision-capable language model.

Components:
    - frames: Capture, retention and selection of camera stills
    - perception: Angle classifier and vehicle detector client
    - analysis: Question handling, prompts, caching and the engine
    - persistence: Optional durable log of frames and readings
    - service: TrafficService, the wired-up application object
    - main: FastAPI application

Example:
    from bridgewatch.config import settings
    from bridgewatch.service import TrafficService

    service = TrafficService(settings)
    service.start()
    result = await service.ask("Is it busy going to Ladybrand?")
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
