"""FastAPI REST API for soundslike."""

import asyncio
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from . import __version__
from .correction import CorrectionContext, correct_text
from .database import SoundsLikeDatabase
from .models import (
    Classification,
    CollisionContext,
    SoundsLikeMapping,
    Tier,
    mapping_to_dict,
)


class MappingResponse(BaseModel):
    """A single classified sounds_like mapping."""

    sounds_like: str
    correct_text: str
    entity_type: str
    entity_id: str
    tier: Optional[int] = None
    collision_risk: Optional[str] = None
    scoped_to_projects: Optional[list[str]] = None
    min_confidence: Optional[float] = None


class CollisionResponse(BaseModel):
    """Mappings sharing one sounds_like value."""

    sounds_like: str
    count: int
    mappings: list[MappingResponse]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    total: int
    tier1: int
    tier2: int
    tier3: int
    collisions: int


class CorrectRequest(BaseModel):
    """Text to correct plus its classification."""

    text: str
    project: Optional[str] = Field(default=None, description="Classified project id")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Classification confidence")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Other classifier output, ignored")
    document_id: Optional[str] = Field(default=None, description="Name used for debug stats output")


class AppliedMappingResponse(BaseModel):
    sounds_like: str
    correct_text: str
    tier: int
    occurrences: int


class StatsResponse(BaseModel):
    """Statistics for one correction pass."""

    tier1_replacements: int
    tier2_replacements: int
    total_replacements: int
    tier1_mappings_considered: int
    tier2_mappings_considered: int
    project_context: Optional[str] = None
    classification_confidence: Optional[float] = None
    processing_time_ms: float
    applied_mappings: list[AppliedMappingResponse]


class CorrectResponse(BaseModel):
    """Corrected text."""

    text: str
    replacements_made: bool
    stats: StatsResponse


class DecideRequest(BaseModel):
    """A single token to decide on."""

    sounds_like: str = Field(min_length=1)
    project: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    surrounding_text: Optional[str] = None


class DecisionResponse(BaseModel):
    """Replacement decision for one token."""

    should_replace: bool
    reason: str
    confidence: float
    mapping: Optional[MappingResponse] = None


def mapping_to_response(mapping: SoundsLikeMapping) -> MappingResponse:
    """Convert internal mapping model to API response."""
    return MappingResponse(**mapping_to_dict(mapping))


def create_app(context: Optional[CorrectionContext] = None) -> FastAPI:
    """
    Build the API application around one correction context.

    Args:
        context: Shared correction context. If None, one is created from the
            default configuration. The database is loaded on first request.
    """
    app = FastAPI(
        title="soundslike API",
        description="Phonetic entity-name correction for transcripts",
        version=__version__,
    )
    app.state.context = context or CorrectionContext()

    async def get_database(request: Request) -> SoundsLikeDatabase:
        return await request.app.state.context.load_async()

    @app.get("/")
    async def root():
        """API root with basic info."""
        return {
            "name": "soundslike API",
            "version": __version__,
            "docs": "/docs",
            "endpoints": {
                "correct": "POST /correct - Correct entity names in text",
                "decide": "POST /decide - Explain the decision for one token",
                "mappings": "GET /mappings - List mappings",
                "collisions": "GET /collisions - List collisions",
                "health": "GET /health - Health check",
            },
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Check service health and report mapping counts."""
        database = await get_database(request)
        return HealthResponse(status="healthy", **database.summary())

    @app.post("/correct", response_model=CorrectResponse)
    async def correct(request: Request, body: CorrectRequest):
        """Run one correction pass over the submitted text."""
        context: CorrectionContext = request.app.state.context
        await get_database(request)

        classification = Classification.from_dict({
            **body.metadata,
            "project": body.project,
            "confidence": body.confidence,
        })

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, correct_text, context, body.text, classification, body.document_id,
        )
        return result.to_dict()

    @app.post("/decide", response_model=DecisionResponse)
    async def decide(request: Request, body: DecideRequest):
        """Decide whether one sounds_like token would be replaced."""
        context: CorrectionContext = request.app.state.context
        database = await get_database(request)

        decision = context.detector.decide_replacement(CollisionContext(
            classification=Classification(project=body.project or None, confidence=body.confidence),
            sounds_like=body.sounds_like,
            available_mappings=database.get_mappings(body.sounds_like),
            surrounding_text=body.surrounding_text,
        ))
        return decision.to_dict()

    @app.get("/mappings", response_model=list[MappingResponse])
    async def list_mappings(
        request: Request,
        tier: Optional[int] = Query(default=None, ge=1, le=3, description="Only this tier"),
    ):
        """List mappings, optionally filtered by tier."""
        database = await get_database(request)
        selected = database.mappings
        if tier is not None:
            selected = [m for m in selected if m.tier == Tier(tier)]
        return [mapping_to_response(m) for m in selected]

    @app.get("/collisions", response_model=list[CollisionResponse])
    async def list_collisions(request: Request):
        """List sounds_like values shared by several entities."""
        database = await get_database(request)
        return [c.to_dict() for c in database.get_all_collisions()]

    @app.get("/collisions/{sounds_like}", response_model=CollisionResponse)
    async def get_collision(request: Request, sounds_like: str):
        """Get the collision for one sounds_like value."""
        database = await get_database(request)
        collision = database.get_collision(sounds_like)
        if collision is None:
            raise HTTPException(status_code=404, detail="No collision for this sounds_like value")
        return collision.to_dict()

    return app


app = create_app()
