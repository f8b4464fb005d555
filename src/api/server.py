"""
FastAPI server exposing Bayesian network inference.

This provides REST API endpoints for:
- Marginal probabilities of every node
- Marginals under do(node=true) / do(node=false)
- Ancestor sensitivity of a target node
- CPT / structure validation
- System status

Request bodies use the browser's node format (``_id``, ``cptEntries``,
``parentStates``); snake_case keys are accepted too.

Usage:
    uvicorn src.api.server:app --reload --port 8000
"""

import logging
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from src.bayesnet import queries, validation
from src.bayesnet.config import load_settings
from src.bayesnet.entropy import make_rng
from src.bayesnet.errors import (
    EncodeError,
    EntropyUnavailableError,
    IncompleteCptError,
    InferenceError,
    NodeNotFoundError,
)
from src.bayesnet.fingerprint import compute_fingerprint
from src.bayesnet.models import CptEntry, InterventionResult, Node
from src.logging_config import configure_logging

logger = logging.getLogger(__name__)

settings = load_settings()
configure_logging(settings.log_level_value)

# App setup
app = FastAPI(
    title="Bayesian Network Inference API",
    description="REST API for Monte Carlo inference over binary Bayesian networks",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state for status reporting
server_state = {
    "query_count": 0,
    "last_query_time": None,
    "last_query_duration_ms": None,
    "last_error": None,
}

# Marginal results keyed by (fingerprint, samples, intervention node)
_marginals_cache: Dict[Tuple[str, int, Optional[str]], Union[Dict[str, float], InterventionResult]] = {}
# Sync endpoints run in the threadpool
_cache_lock = threading.Lock()
MAX_CACHE_ENTRIES = 128


# Pydantic models
class CptEntryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parent_states: Dict[str, Optional[bool]] = Field(default_factory=dict, alias="parentStates")
    probability: float


class NodeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    cpt_entries: List[CptEntryModel] = Field(default_factory=list, alias="cptEntries")

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            cpt_entries=[
                CptEntry(parent_states=dict(e.parent_states), probability=e.probability)
                for e in self.cpt_entries
            ],
        )


class NetworkRequest(BaseModel):
    nodes: List[NodeModel]
    num_samples: Optional[int] = Field(default=None, ge=1, le=1_000_000, alias="numSamples")
    seed: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class InterventionRequest(NetworkRequest):
    node_id: str = Field(alias="interventionNodeId")


class SensitivityRequest(NetworkRequest):
    target_node_id: str = Field(alias="targetNodeId")


class MarginalsResponse(BaseModel):
    probabilities: Dict[str, float]
    num_samples: int


class InterventionResponse(BaseModel):
    node_id: str
    true_case: Dict[str, float]
    false_case: Dict[str, float]
    num_samples: int


class SensitivityItem(BaseModel):
    node_id: str
    sensitivity: float
    p_true: float
    p_false: float


class SensitivityResponse(BaseModel):
    target: str
    sensitivities: List[SensitivityItem]
    num_samples: int


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[str]


class SystemStatus(BaseModel):
    connected: bool
    lastUpdate: str
    queryCount: int
    lastQueryDuration: Optional[int] = None
    lastError: Optional[str] = None
    cachedResults: int


def _error_status(error: InferenceError) -> int:
    if isinstance(error, NodeNotFoundError):
        return 404
    if isinstance(error, IncompleteCptError):
        return 422
    if isinstance(error, EntropyUnavailableError):
        return 503
    if isinstance(error, EncodeError):
        return 400
    return 500


def _run(label: str, fn):
    """Execute a query, recording status and mapping errors to HTTP codes."""
    start = time.time()
    try:
        result = fn()
    except InferenceError as e:
        server_state["last_error"] = str(e)
        logger.warning(f"{label} failed: {e}")
        raise HTTPException(status_code=_error_status(e), detail=f"{label} failed: {e}")
    except ValueError as e:
        server_state["last_error"] = str(e)
        raise HTTPException(status_code=400, detail=f"{label} failed: {e}")

    server_state["query_count"] += 1
    server_state["last_query_time"] = datetime.now().isoformat()
    server_state["last_query_duration_ms"] = int((time.time() - start) * 1000)
    server_state["last_error"] = None
    return result


def _cached(nodes: List[Node], num_samples: int, node_id: Optional[str], seed: Optional[int]):
    key = (compute_fingerprint(nodes), num_samples, node_id)
    # Unseeded repeats reuse the earlier estimate; a fixed seed always recomputes.
    if seed is None:
        with _cache_lock:
            cached = _marginals_cache.get(key)
        if cached is not None:
            return cached

    result = queries.compute_marginals_request(nodes, num_samples, node_id, make_rng(seed))
    if seed is None:
        _store(key, result)
    return result


def _store(key: Tuple[str, int, Optional[str]], result) -> None:
    """Insert into the cache, evicting the oldest entry when full."""
    with _cache_lock:
        while len(_marginals_cache) >= MAX_CACHE_ENTRIES:
            _marginals_cache.pop(next(iter(_marginals_cache)))
        _marginals_cache[key] = result


def _samples(request: NetworkRequest) -> int:
    return request.num_samples or settings.num_samples


def _seed(request: NetworkRequest) -> Optional[int]:
    return request.seed if request.seed is not None else settings.seed


@app.get("/api/status", response_model=SystemStatus)
async def get_status():
    """Get system status."""
    return SystemStatus(
        connected=True,
        lastUpdate=datetime.now().isoformat(),
        queryCount=server_state["query_count"],
        lastQueryDuration=server_state["last_query_duration_ms"],
        lastError=server_state["last_error"],
        cachedResults=len(_marginals_cache),
    )


@app.get("/api/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/api/marginals", response_model=MarginalsResponse)
def post_marginals(request: NetworkRequest):
    """Marginal P(node = true) for every node."""
    nodes = [n.to_node() for n in request.nodes]
    num_samples = _samples(request)
    probabilities = _run("Marginals", lambda: _cached(nodes, num_samples, None, _seed(request)))
    return MarginalsResponse(probabilities=probabilities, num_samples=num_samples)


@app.post("/api/intervention", response_model=InterventionResponse)
def post_intervention(request: InterventionRequest):
    """Marginals under do(node=true) and do(node=false)."""
    nodes = [n.to_node() for n in request.nodes]
    num_samples = _samples(request)
    if not nodes:
        raise HTTPException(status_code=404, detail=f"Node {request.node_id} not found")

    result = _run("Intervention", lambda: _cached(nodes, num_samples, request.node_id, _seed(request)))
    return InterventionResponse(
        node_id=request.node_id,
        true_case=result.true_case,
        false_case=result.false_case,
        num_samples=num_samples,
    )


@app.post("/api/sensitivity", response_model=SensitivityResponse)
def post_sensitivity(request: SensitivityRequest):
    """Ancestor sensitivity of the target node, strongest first."""
    nodes = [n.to_node() for n in request.nodes]
    num_samples = _samples(request)
    results = _run(
        "Sensitivity analysis",
        lambda: queries.compute_sensitivity(
            nodes, request.target_node_id, num_samples, make_rng(_seed(request))
        ),
    )
    return SensitivityResponse(
        target=request.target_node_id,
        sensitivities=[SensitivityItem(**r.to_dict()) for r in results],
        num_samples=num_samples,
    )


@app.post("/api/validate", response_model=ValidationResponse)
def post_validate(request: NetworkRequest):
    """Structure and CPT coverage checks."""
    nodes = [n.to_node() for n in request.nodes]
    ok, errors = validation.validate_network(nodes, settings.max_wildcards)
    return ValidationResponse(valid=ok, errors=errors)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
