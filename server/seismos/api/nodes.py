"""Node status, building summary and pipeline stage endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api/v1")


def _node_detail(node_id: str) -> dict | None:
    from seismos.main import get_monitor

    monitor = get_monitor()
    node = monitor.node(node_id)
    if node is None:
        return None

    result = monitor.result(node_id)
    assessment = monitor.assessment(node_id)
    detail = node.to_dict()
    detail["result"] = result.to_dict() if result is not None else None
    detail["insd"] = assessment.to_dict() if assessment is not None else None
    return detail


@router.get("/nodes")
async def list_nodes() -> JSONResponse:
    """All nodes with their current status and latest damage score."""
    from seismos.main import get_monitor

    monitor = get_monitor()
    nodes = []
    for node in monitor.nodes:
        entry = node.to_dict()
        result = monitor.result(node.id)
        entry["damage_score"] = result.damage_score.score if result is not None else None
        nodes.append(entry)
    return JSONResponse(content={"nodes": nodes, "total": len(nodes)})


@router.get("/nodes/{node_id}")
async def get_node(node_id: str) -> JSONResponse:
    """Full detail for one node: latest pipeline result and INSD assessment."""
    detail = _node_detail(node_id)
    if detail is None:
        return JSONResponse(content={"error": f"unknown node {node_id}"}, status_code=404)
    return JSONResponse(content=detail)


@router.get("/summary")
async def get_summary() -> dict:
    """Building counts per damage band plus earthquake state."""
    from seismos.main import get_monitor

    monitor = get_monitor()
    return {
        "buildings": monitor.summary().to_dict(),
        "peak_magnitude": round(monitor.peak_magnitude, 4),
        "earthquake_active": monitor.earthquake_active,
        "earthquake_progress": round(monitor.earthquake_progress, 1),
    }


@router.get("/pipeline")
async def get_pipeline() -> dict:
    """Stage status of the most recent tick (not per node)."""
    from seismos.main import get_monitor

    return {"stages": get_monitor().pipeline_stages()}
