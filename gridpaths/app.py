"""Flask backend serving the grid pathfinding core over HTTP and SocketIO.

Plain searches, multi-agent plans and spanning trees are answered directly
over HTTP. Traced A* runs execute as background tasks and stream their
expansion history through WebSocket events using Flask-SocketIO (which falls
back to polling if WebSocket is unavailable).
"""
from __future__ import annotations

from threading import Lock
from typing import Any, Dict

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from loguru import logger
from pydantic import ValidationError

from gridpaths.algorithms.astar import PathFinder
from gridpaths.algorithms.errors import GridError
from gridpaths.algorithms.multi_agent import MultiAgentPlanner
from gridpaths.algorithms.spanning_tree import SpanningTreeBuilder
from gridpaths.algorithms.trace import SearchTrace
from gridpaths.config import Config, setup_logger
from gridpaths.schemas import (
    AgentsRequest,
    MSTInsertRequest,
    MSTRequest,
    PathRequest,
    SearchRunRequest,
)

app = Flask(__name__)
app.config.from_object(Config)
socketio = SocketIO(app, cors_allowed_origins=Config.CORS_ORIGINS)

# Enable CORS for /api/* endpoints so that the frontend dev server can POST
CORS(app, resources={r"/api/*": {"origins": Config.CORS_ORIGINS}})

# keep track of traced runs (id -> state)
_runs: Dict[str, Dict[str, Any]] = {}
_runs_lock = Lock()


def _points(path):
    return None if path is None else [list(p) for p in path]


@app.errorhandler(ValidationError)
def handle_validation_error(err: ValidationError):
    logger.warning(f"rejected request to {request.path}: {err.error_count()} validation error(s)")
    return jsonify({"error": "invalid request", "details": err.errors(include_url=False, include_context=False)}), 400


@app.errorhandler(GridError)
def handle_grid_error(err: GridError):
    logger.warning(f"rejected request to {request.path}: {err}")
    return jsonify({"error": str(err)}), 400


# --------------------------------------------------------
# Single-agent A*
# --------------------------------------------------------


@app.route("/api/path", methods=["POST"])
def find_path():
    req = PathRequest.model_validate(request.get_json(force=True))
    grid = req.build_grid()
    result = PathFinder(grid).search(req.start, req.goal, req.bridge_budget, req.bridge_cost)
    if result is None:
        return jsonify({"found": False, "path": None, "cost": None, "bridges": None})
    return jsonify({
        "found": True,
        "path": _points(result.path),
        "cost": result.cost,
        "bridges": result.bridges,
        "expanded": result.expanded,
    })


def _forget_old_runs() -> None:
    """Make room for one more run by dropping the oldest finished ones (lock held)."""
    finished = [rid for rid, state in _runs.items() if state["status"] != "running"]
    for rid in finished[:max(0, len(_runs) + 1 - app.config["MAX_RUNS"])]:
        del _runs[rid]


def run_traced_search(run_id: str, finder: PathFinder, req: SearchRunRequest, trace: SearchTrace) -> None:
    """Run one traced search, record its outcome and emit it to listeners."""
    try:
        result = finder.search(req.start, req.goal, req.bridge_budget, req.bridge_cost, on_expand=trace)
    except Exception as exc:
        logger.exception(f"run {run_id} failed")
        with _runs_lock:
            _runs[run_id].update(status="error", error=str(exc), expanded=trace.expanded)
        socketio.emit("astar_error", {"run_id": run_id, "error": str(exc)})
        return

    path = None if result is None else _points(result.path)
    with _runs_lock:
        _runs[run_id].update(status="done", path=path, expanded=trace.expanded)

    # Emit retained history at once, then the final path
    socketio.emit("astar_history", {"run_id": run_id, "history": trace.history(), "truncated": trace.truncated})
    socketio.emit("astar_done", {"run_id": run_id, "path": path, "expanded": trace.expanded})
    logger.info(f"run {run_id} finished, expanded={trace.expanded}, found={path is not None}")


@app.route("/api/run/astar", methods=["POST"])
def run_astar():
    req = SearchRunRequest.model_validate(request.get_json(force=True))
    grid = req.build_grid()
    finder = PathFinder(grid)
    # validate start/goal now so bad input is a 400, not a failed background task
    grid.check_point(req.start, "start")
    grid.check_point(req.goal, "goal")

    trace = SearchTrace(limit=req.trace_limit or app.config["DEFAULT_TRACE_LIMIT"])
    run_id = req.run_id or f"astar_{id(trace)}"

    with _runs_lock:
        _forget_old_runs()
        _runs[run_id] = {"status": "running", "path": None, "expanded": 0}

    socketio.start_background_task(run_traced_search, run_id, finder, req, trace)
    return jsonify({"status": "started", "run_id": run_id})


@app.route("/api/runs", methods=["GET"])
def list_runs():
    with _runs_lock:
        return jsonify(list(_runs.keys()))


@app.route("/api/runs/<run_id>", methods=["GET"])
def get_run(run_id: str):
    with _runs_lock:
        state = _runs.get(run_id)
        if state is None:
            return jsonify({"error": f"unknown run {run_id}"}), 404
        return jsonify({"run_id": run_id, **state})


# --------------------------------------------------------
# Multi-agent planning
# --------------------------------------------------------


@app.route("/api/agents/plan", methods=["POST"])
def plan_agents():
    req = AgentsRequest.model_validate(request.get_json(force=True))
    grid = req.build_grid()
    agents = [agent.to_agent() for agent in req.agents]
    result = MultiAgentPlanner(grid).plan(agents, req.horizon)
    return jsonify({
        "paths": {str(aid): _points(p) for aid, p in result.paths.items()},
        "failed": result.failed,
        "horizon": result.horizon,
        "makespan": result.makespan(),
    })


# --------------------------------------------------------
# Spanning tree ("roads")
# --------------------------------------------------------


@app.route("/api/mst", methods=["POST"])
def build_mst():
    req = MSTRequest.model_validate(request.get_json(force=True))
    builder = SpanningTreeBuilder(req.build_grid(), req.bridge_budget, req.bridge_cost)
    return jsonify(builder.build(req.points).to_dict())


@app.route("/api/mst/insert", methods=["POST"])
def insert_mst_point():
    req = MSTInsertRequest.model_validate(request.get_json(force=True))
    builder = SpanningTreeBuilder(req.build_grid(), req.bridge_budget, req.bridge_cost)
    return jsonify(builder.insert(req.tree.to_tree(), req.point).to_dict())


if __name__ == "__main__":
    Config.validate()
    setup_logger(Config.LOG_LEVEL)
    logger.info(Config.display())
    socketio.run(app, host=Config.HOST, port=Config.PORT, debug=Config.DEBUG)
