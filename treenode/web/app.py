"""
FastAPI web application for treenode.
Exposes the node hierarchy as a JSON API and maps hierarchy errors to HTTP responses.
"""
import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from treenode.services.exceptions import (
    CyclicReferenceError,
    DuplicateNameError,
    ForbiddenError,
    NotFoundError,
    StoreFailureError,
    TreeError,
)
from treenode.services.exporter import export_filename, node_view_to_dict, render_snapshot_json, render_view_json
from treenode.services.hierarchy import HierarchyEngine
from treenode.services.models import NAME_MAX_LENGTH
from treenode.services.persistence import DB_FILE, NodeStore
from treenode.web.security import ADMIN_ROLE, Actor, get_actor, require_role

logging.basicConfig(
    level=os.getenv("TREENODE_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

app = FastAPI(title="treenode", version="1.0.0")

_STATUS_CODES = {
    NotFoundError: 404,
    DuplicateNameError: 400,
    CyclicReferenceError: 400,
    ForbiddenError: 403,
}


# ===== REQUEST MODELS =====

class CreateNodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    parent_id: Optional[int] = Field(None, alias="parentId")


class UpdateNodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    new_parent_id: Optional[int] = Field(None, alias="newParentId")


class MoveNodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_parent_id: Optional[int] = Field(None, alias="newParentId")


# ===== DEPENDENCIES =====

def get_store():
    """One connection per request; closed when the response is done."""
    store = NodeStore(DB_FILE)
    try:
        yield store
    finally:
        store.close()


def get_engine(store: NodeStore = Depends(get_store)) -> HierarchyEngine:
    return HierarchyEngine(store)


# ===== ERROR HANDLING =====

def status_code_for(exc: TreeError) -> int:
    if isinstance(exc, StoreFailureError):
        return 409 if exc.conflict else 500
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def problem_response(request: Request, status_code: int, title: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_code,
            "title": title,
            "detail": detail,
            "instance": request.url.path,
            "type": f"https://httpstatuses.io/{status_code}"
        }
    )


@app.exception_handler(TreeError)
async def tree_error_handler(request: Request, exc: TreeError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return problem_response(request, status_code, "Internal server error", exc.message)
    logging.warning(f"{request.method} {request.url.path} rejected with {status_code}: {exc.message}")
    return problem_response(request, status_code, exc.message)


def _internal_error(action: str, e: Exception) -> HTTPException:
    logging.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


# ===== TREE ROUTES =====

@app.get("/api/tree/roots")
def get_root_nodes(engine: HierarchyEngine = Depends(get_engine), actor: Actor = Depends(get_actor)):
    """List all root nodes without their descendants."""
    try:
        return [node_view_to_dict(view) for view in engine.get_roots()]
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error("listing root nodes", e)


@app.get("/api/tree/export")
def export_tree(engine: HierarchyEngine = Depends(get_engine), actor: Actor = Depends(get_actor)):
    """Export the whole forest in the response body."""
    try:
        return Response(content=render_snapshot_json(engine.export_tree(), indent=None), media_type="application/json")
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error("exporting tree", e)


@app.get("/api/tree/export/json")
def export_tree_file(engine: HierarchyEngine = Depends(get_engine), actor: Actor = Depends(get_actor)):
    """Export the whole forest as a downloadable JSON file."""
    try:
        snapshot = engine.export_tree()
        return Response(
            content=render_snapshot_json(snapshot).encode("utf-8"),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{export_filename(snapshot.export_date)}"'}
        )
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error("exporting tree file", e)


@app.get("/api/tree/{node_id}")
def get_node(node_id: int, engine: HierarchyEngine = Depends(get_engine), actor: Actor = Depends(get_actor)):
    """Get a node with its full subtree."""
    try:
        return Response(content=render_view_json(engine.get_node(node_id)), media_type="application/json")
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error(f"fetching node {node_id}", e)


@app.post("/api/tree", status_code=201)
def create_node(
    request: CreateNodeRequest,
    engine: HierarchyEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor)
):
    try:
        view = engine.create_node(request.name, request.parent_id)
        logging.info(f"User {actor.id} created node {view.id}")
        return JSONResponse(
            status_code=201,
            content=node_view_to_dict(view),
            headers={"Location": f"/api/tree/{view.id}"}
        )
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error(f"creating node '{request.name}'", e)


@app.put("/api/tree/{node_id}")
def update_node(
    node_id: int,
    request: UpdateNodeRequest,
    engine: HierarchyEngine = Depends(get_engine),
    actor: Actor = Depends(require_role(ADMIN_ROLE))
):
    try:
        view = engine.update_node(node_id, request.name, request.new_parent_id)
        logging.info(f"User {actor.id} updated node {node_id}")
        return node_view_to_dict(view)
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error(f"updating node {node_id}", e)


@app.delete("/api/tree/{node_id}", status_code=204)
def delete_node(
    node_id: int,
    engine: HierarchyEngine = Depends(get_engine),
    actor: Actor = Depends(require_role(ADMIN_ROLE))
):
    try:
        engine.delete_node(node_id)
        logging.info(f"User {actor.id} deleted node {node_id}")
        return Response(status_code=204)
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error(f"deleting node {node_id}", e)


@app.post("/api/tree/{node_id}/move")
def move_node(
    node_id: int,
    request: MoveNodeRequest,
    engine: HierarchyEngine = Depends(get_engine),
    actor: Actor = Depends(get_actor)
):
    try:
        view = engine.move_node(node_id, request.new_parent_id)
        logging.info(f"User {actor.id} moved node {node_id} under {request.new_parent_id}")
        return node_view_to_dict(view)
    except TreeError:
        raise
    except Exception as e:
        raise _internal_error(f"moving node {node_id}", e)
